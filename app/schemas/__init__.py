from .analysis import AnalysisAccepted, AnalysisResult, AnalysisStatus
from .auth import LoginRequest, SignupRequest, SignupResponse, Token, UserProfile
from .study import ApproveRequest, ChatRequest

__all__ = [
    "AnalysisAccepted",
    "AnalysisResult",
    "AnalysisStatus",
    "ApproveRequest",
    "ChatRequest",
    "LoginRequest",
    "SignupRequest",
    "SignupResponse",
    "Token",
    "UserProfile",
]
