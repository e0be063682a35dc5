"""Workout plan (blueprint) models."""

from dataclasses import dataclass, field

from ..errors import DeserializationError, ValidationError

MUSCLE_GROUPS = [
    "Chest",
    "Back",
    "Shoulders",
    "Biceps",
    "Triceps",
    "Forearms",
    "Abs",
    "Glutes",
    "Quads",
    "Hamstrings",
    "Calves",
    "Neck",
]


@dataclass
class Exercise:
    """An exercise within a plan."""

    id: str
    name: str
    muscle_type: str = "Chest"
    sets: int = 3
    reps: str = "10"  # string so ranges like "8-10" survive
    weight: float = 0
    notes: str | None = None
    image: str | None = None  # base64 data or URL

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        data = {
            "id": self.id,
            "name": self.name,
            "muscleType": self.muscle_type,
            "sets": self.sets,
            "reps": self.reps,
            "weight": self.weight,
        }
        if self.notes is not None:
            data["notes"] = self.notes
        if self.image is not None:
            data["image"] = self.image
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Exercise":
        """Create from dictionary."""
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            muscle_type=str(data.get("muscleType", "Chest")),
            sets=int(data.get("sets", 0)),
            reps=str(data.get("reps", "")),
            weight=data.get("weight", 0) or 0,
            notes=data.get("notes"),
            image=data.get("image"),
        )


@dataclass
class Plan:
    """A named, ordered collection of exercises.

    Entries point at plans by id only; deleting a plan leaves those
    entries untouched.
    """

    id: str
    name: str
    exercises: list[Exercise] = field(default_factory=list)
    description: str = ""
    created_at: int = 0  # epoch milliseconds

    def validate(self) -> None:
        """Check plan-level rules.

        Raises:
            ValidationError: If the name is empty or an exercise is invalid
        """
        if not self.name or not self.name.strip():
            raise ValidationError("Plan name must not be empty")
        for exercise in self.exercises:
            if exercise.sets < 0:
                raise ValidationError(
                    f"Exercise '{exercise.name}' has a negative set count"
                )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "exercises": [e.to_dict() for e in self.exercises],
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Plan":
        """Create from dictionary.

        Raises:
            DeserializationError: If the record is malformed
        """
        if not isinstance(data, dict):
            raise DeserializationError(f"Plan must be an object, got {type(data).__name__}")
        try:
            exercises = data.get("exercises") or []
            if not isinstance(exercises, list):
                raise ValueError("exercises must be a list")
            return cls(
                id=str(data["id"]),
                name=str(data["name"]),
                exercises=[Exercise.from_dict(e) for e in exercises],
                description=data.get("description") or "",
                created_at=int(data.get("createdAt") or 0),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise DeserializationError(f"Malformed plan: {e}") from e
