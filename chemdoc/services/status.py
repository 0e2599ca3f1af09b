# chemdoc/services/status.py
"""
Document status state machine

    uploaded -> processing -> processed | error
    processed -> completed
    error -> processing      (retry)
"""
from typing import Dict, FrozenSet, Union

from ..models.document import DocumentStatus
from .errors import InvalidStatusTransitionError

ALLOWED_TRANSITIONS: Dict[DocumentStatus, FrozenSet[DocumentStatus]] = {
    DocumentStatus.UPLOADED: frozenset({DocumentStatus.PROCESSING}),
    DocumentStatus.PROCESSING: frozenset({DocumentStatus.PROCESSED, DocumentStatus.ERROR}),
    DocumentStatus.PROCESSED: frozenset({DocumentStatus.COMPLETED}),
    DocumentStatus.ERROR: frozenset({DocumentStatus.PROCESSING}),
    DocumentStatus.COMPLETED: frozenset(),
}


def can_transition(current: Union[DocumentStatus, str], target: Union[DocumentStatus, str]) -> bool:
    current = DocumentStatus(current)
    target = DocumentStatus(target)
    # Re-saving a document in its current state is not a transition
    if current == target:
        return True
    return target in ALLOWED_TRANSITIONS[current]


def check_transition(current: Union[DocumentStatus, str], target: Union[DocumentStatus, str]) -> DocumentStatus:
    """Return the target status, or raise if the move is not allowed"""
    if not can_transition(current, target):
        raise InvalidStatusTransitionError(DocumentStatus(current).value, DocumentStatus(target).value)
    return DocumentStatus(target)
