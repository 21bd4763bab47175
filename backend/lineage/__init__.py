from .errors import FormatError
from .models import (
    GedcomFile,
    Gender,
    GeneratorOptions,
    MappingError,
    MappingErrorType,
    MappingResult,
    ParentRelationship,
    ParsedRecord,
    Person,
    Relationship,
    RelationshipType,
    Severity,
    SiblingRelationship,
    SpouseRelationship,
    ValidationIssue,
)
from .parser import parse, tokenize_line
from .validator import validate
from .mapper import map_from_gedcom
from .generator import generate
from .graph import RelationshipMaps, build_relationship_maps
from .traversal import (
    ChartEdge,
    CollectionState,
    collect_ancestors,
    collect_descendants,
    collect_bowtie_ancestors,
    collect_tree_ancestors,
    collect_tree_descendants,
)
from .layout import calculate_fan_layout

__all__ = [
    "FormatError",
    # Models
    "GedcomFile",
    "Gender",
    "GeneratorOptions",
    "MappingError",
    "MappingErrorType",
    "MappingResult",
    "ParentRelationship",
    "ParsedRecord",
    "Person",
    "Relationship",
    "RelationshipType",
    "Severity",
    "SiblingRelationship",
    "SpouseRelationship",
    "ValidationIssue",
    # Import / export
    "parse",
    "tokenize_line",
    "validate",
    "map_from_gedcom",
    "generate",
    # Charts
    "RelationshipMaps",
    "build_relationship_maps",
    "ChartEdge",
    "CollectionState",
    "collect_ancestors",
    "collect_descendants",
    "collect_bowtie_ancestors",
    "collect_tree_ancestors",
    "collect_tree_descendants",
    "calculate_fan_layout",
]
