"""Service interface contracts (ABCs)"""

from reportes.services.interfaces.ticket_extractor import ITicketExtractor
from reportes.services.interfaces.resolution_analyzer import IResolutionAnalyzer
from reportes.services.interfaces.store_directory import IStoreDirectory
from reportes.services.interfaces.push_sender import IPushSender

__all__ = [
    'ITicketExtractor',
    'IResolutionAnalyzer',
    'IStoreDirectory',
    'IPushSender',
]
