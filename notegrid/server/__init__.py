"""
NoteGrid Server

HTTP backend for the add-on: LLM-based note extraction and tag e-mails.
"""

from .analyzer import NoteAnalyzer, AnalysisInputError, AnalysisOutputError, IncomingFile
from .mailer import TagMailer, MailerNotConfigured

__all__ = [
    "NoteAnalyzer",
    "AnalysisInputError",
    "AnalysisOutputError",
    "IncomingFile",
    "TagMailer",
    "MailerNotConfigured",
]
