"""
govtrack

A civic issue tracker linking goals, problems, ideas and actions, with
typed relations, dependency cycle prevention and keyword/similarity
heuristics for classification and duplicate detection.

Quick Start:
    from govtrack import Tracker

    tr = Tracker(".govtrack")
    goal = tr.entities.create("goal", {"title": "Safe streets"})
    problem = tr.entities.create("problem", {"title": "Broken streetlight"})
    tr.relations.link(problem.id, "threatens", goal.id)

CLI Usage:
    govtrack init
    govtrack problem "Pothole on Main Street" --priority P1
    govtrack link gp-1a2b threatens gg-3c4d
    govtrack blocked ga-5e6f

Data Directory:
    .govtrack/ in the current directory or any parent.
    Override with GOVTRACK_DATA_DIR or --data-dir.
"""

from .errors import ConflictError, CycleError, GovtrackError, NotFoundError, ValidationError
from .similarity import calculate_similarity, classify_text
from .tracker import Tracker
from .types import Entity, Government, Issue, RelationType

__version__ = "0.1.0"
__all__ = [
    "Tracker",
    "Entity",
    "Government",
    "Issue",
    "RelationType",
    "GovtrackError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "CycleError",
    "classify_text",
    "calculate_similarity",
]
