"""Research mode presets."""

from dataclasses import dataclass

# Single source of truth for the default Claude model across all modules.
DEFAULT_MODEL = "claude-sonnet-4-20250514"


@dataclass(frozen=True)
class ResearchMode:
    """Shape of the research tree for one run."""
    name: str
    breadth: int  # Sub-queries generated at the root; halved at each level
    depth: int  # Maximum recursion depth below the root
    description: str = ""

    def __post_init__(self) -> None:
        """Validate mode configuration."""
        errors = []

        if not self.name:
            errors.append("name cannot be empty")
        if self.breadth < 1:
            errors.append(f"breadth must be >= 1, got {self.breadth}")
        if self.depth < 0:
            errors.append(f"depth must be >= 0, got {self.depth}")

        if errors:
            raise ValueError(f"Invalid ResearchMode: {'; '.join(errors)}")

    @classmethod
    def quick(cls) -> "ResearchMode":
        return cls(
            name="quick",
            breadth=2,
            depth=1,
            description="Two angles, one level of follow-up",
        )

    @classmethod
    def standard(cls) -> "ResearchMode":
        return cls(
            name="standard",
            breadth=3,
            depth=2,
            description="Three angles, two levels of follow-up",
        )

    @classmethod
    def deep(cls) -> "ResearchMode":
        return cls(
            name="deep",
            breadth=4,
            depth=3,
            description="Four angles, three levels of follow-up",
        )

    @classmethod
    def from_name(cls, name: str) -> "ResearchMode":
        """Get a mode by name."""
        modes = {
            "quick": cls.quick,
            "standard": cls.standard,
            "deep": cls.deep,
        }
        if name not in modes:
            raise ValueError(f"Unknown mode: {name}. Valid modes: {list(modes.keys())}")
        return modes[name]()
