"""Projection of canonical records into what the console displays."""

from inbox.view.projector import project, project_conversations
from inbox.view.state import ViewState

__all__ = [
    "ViewState",
    "project",
    "project_conversations",
]
