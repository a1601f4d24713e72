"""
Value types for stone pieces.

StoneSpecifications and RenderOptions are immutable and validated on
construction; everything downstream (rendering, export) trusts them.
"""

import math
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Tuple

from stone_mockup.errors import ValidationError

EDGE_SIDES: Tuple[str, ...] = ("top", "bottom", "left", "right")

MATERIAL_TYPES: Tuple[str, ...] = (
    "quartz",
    "marble",
    "granite",
    "quartzite",
    "soapstone",
    "porcelain",
)

THICKNESSES: Tuple[str, ...] = ("2cm", "3cm", "1.2cm", "2.5cm")


def _positive_inches(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name} must be a number, got {value!r}")
    value = float(value)
    if not math.isfinite(value) or value <= 0:
        raise ValidationError(f"{name} must be a positive finite number, got {value!r}")
    return value


def normalize_edges(edges: Iterable[str]) -> Tuple[str, ...]:
    """Lower-case, validate and de-duplicate polished edges, keeping first-seen order."""
    if edges is None:
        return ()
    if isinstance(edges, str):
        edges = [e for e in edges.split(",") if e.strip()]
    result: List[str] = []
    for edge in edges:
        side = str(edge).strip().lower()
        if side not in EDGE_SIDES:
            raise ValidationError(
                f"Unknown polished edge {edge!r}; expected one of {', '.join(EDGE_SIDES)}"
            )
        if side not in result:
            result.append(side)
    return tuple(result)


@dataclass(frozen=True)
class StoneSpecifications:
    """Dimensions and finish of one rectangular piece (inches)."""
    width: float
    height: float
    polished_edges: Tuple[str, ...] = ()
    material_type: str = "quartz"
    thickness: str = "2cm"
    quantity: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "width", _positive_inches("width", self.width))
        object.__setattr__(self, "height", _positive_inches("height", self.height))
        object.__setattr__(self, "polished_edges", normalize_edges(self.polished_edges))

        material = str(self.material_type).strip()
        if material.lower() not in MATERIAL_TYPES:
            raise ValidationError(
                f"Unknown material {self.material_type!r}; expected one of "
                f"{', '.join(MATERIAL_TYPES)}"
            )
        object.__setattr__(self, "material_type", material)

        thickness = str(self.thickness).strip().lower()
        if thickness not in THICKNESSES:
            raise ValidationError(
                f"Unknown thickness {self.thickness!r}; expected one of {', '.join(THICKNESSES)}"
            )
        object.__setattr__(self, "thickness", thickness)

        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise ValidationError(f"quantity must be an integer, got {self.quantity!r}")
        if self.quantity < 1:
            raise ValidationError(f"quantity must be at least 1, got {self.quantity}")

    @property
    def material_label(self) -> str:
        """Material name with its first letter capitalized ("quartz" -> "Quartz")."""
        return self.material_type[:1].upper() + self.material_type[1:]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the stored project field names."""
        return {
            "width": self.width,
            "height": self.height,
            "polishedEdges": list(self.polished_edges),
            "materialType": self.material_type,
            "thickness": self.thickness,
            "quantity": self.quantity,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoneSpecifications":
        """Build from a dict with camelCase or snake_case keys."""
        if not isinstance(data, dict):
            raise ValidationError(f"Specifications must be an object, got {type(data).__name__}")
        try:
            return cls(
                width=data["width"],
                height=data["height"],
                polished_edges=data.get("polishedEdges", data.get("polished_edges", ())),
                material_type=data.get("materialType", data.get("material_type", "quartz")),
                thickness=data.get("thickness", "2cm"),
                quantity=data.get("quantity", 1),
            )
        except KeyError as exc:
            raise ValidationError(f"Specifications missing field {exc.args[0]!r}") from exc


@dataclass(frozen=True)
class RenderOptions:
    """Display toggles and zoom for one render."""
    show_grid: bool = True
    show_polished_edges: bool = True
    use_x_marks: bool = True
    scale: float = 1.0
    padding: float = 40.0

    def __post_init__(self) -> None:
        if isinstance(self.scale, bool) or not isinstance(self.scale, (int, float)):
            raise ValidationError(f"scale must be a number, got {self.scale!r}")
        if not math.isfinite(self.scale) or self.scale <= 0:
            raise ValidationError(f"scale must be a positive finite number, got {self.scale!r}")
        if not isinstance(self.padding, (int, float)) or not math.isfinite(self.padding):
            raise ValidationError(f"padding must be a finite number, got {self.padding!r}")
        if self.padding < 0:
            raise ValidationError(f"padding must be >= 0, got {self.padding}")


@dataclass
class StonePiece:
    """A finalized piece in a project."""
    specs: StoneSpecifications
    notes: str = ""
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "specs": self.specs.to_dict(), "notes": self.notes}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StonePiece":
        if not isinstance(data, dict) or "specs" not in data:
            raise ValidationError("Piece entry must be an object with a 'specs' field")
        piece_id = data.get("id") or uuid.uuid4().hex
        return cls(
            specs=StoneSpecifications.from_dict(data["specs"]),
            notes=str(data.get("notes") or ""),
            id=str(piece_id),
        )


@dataclass
class StoneProject:
    """Named collection of pieces exported together."""
    name: str
    pieces: List[StonePiece] = field(default_factory=list)

    def add_piece(self, specs: StoneSpecifications, notes: str = "") -> StonePiece:
        piece = StonePiece(specs=specs, notes=notes)
        self.pieces.append(piece)
        return piece

    def remove_piece(self, piece_id: str) -> bool:
        """Remove a piece by id. Returns False if no piece matched."""
        for i, piece in enumerate(self.pieces):
            if piece.id == piece_id:
                del self.pieces[i]
                return True
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "pieces": [p.to_dict() for p in self.pieces]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoneProject":
        if not isinstance(data, dict):
            raise ValidationError("Project must be a JSON object")
        pieces = data.get("pieces", [])
        if not isinstance(pieces, list):
            raise ValidationError("Project 'pieces' must be a list")
        return cls(
            name=str(data.get("name") or ""),
            pieces=[StonePiece.from_dict(p) for p in pieces],
        )
