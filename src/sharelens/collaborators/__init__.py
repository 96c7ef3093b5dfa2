"""External collaborators: file share, log tools, reasoning model, notifier."""

from sharelens.collaborators.filesystem import FileInfo, FileShare, LocalFileShare
from sharelens.collaborators.logtools import FileShareLogAccess, FileShareToolset, LogAccess, LogToolset
from sharelens.collaborators.notify import NotificationResult, Notifier, SmtpNotifier
from sharelens.collaborators.reasoning import LiteLLMReasoner, Reasoner, ReasoningProviderConfig

__all__ = [
    "FileInfo",
    "FileShare",
    "FileShareLogAccess",
    "FileShareToolset",
    "LiteLLMReasoner",
    "LocalFileShare",
    "LogAccess",
    "LogToolset",
    "NotificationResult",
    "Notifier",
    "Reasoner",
    "ReasoningProviderConfig",
    "SmtpNotifier",
]
