"""
PHYSIOTRACK Physio Service Clients
"""

from .pose_client import PoseServiceClient
from .report_client import ReportServiceClient

__all__ = [
    'PoseServiceClient',
    'ReportServiceClient',
]
