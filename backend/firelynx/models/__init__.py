from .projects import Project, User, FileAsset
from .documents import SequenceCounter, Invoice, VariationRequest, Ticket, ApprovalPacket, ApprovalItem

__all__ = [
    'Project', 'User', 'FileAsset',
    'SequenceCounter', 'Invoice', 'VariationRequest', 'Ticket',
    'ApprovalPacket', 'ApprovalItem',
]
