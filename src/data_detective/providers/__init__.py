"""Provider catalog, credential scopes and selection."""

from .catalog import PROVIDERS, ProviderDescriptor, ProviderKind
from .client import ProviderCaller, SdkProviderCaller
from .credentials import CredentialStore
from .errors import classify_provider_error
from .intent import IntentClassifier, KeywordIntentClassifier, QuestionIntent
from .manager import ProviderManager

__all__ = [
    "PROVIDERS",
    "CredentialStore",
    "IntentClassifier",
    "KeywordIntentClassifier",
    "ProviderCaller",
    "ProviderDescriptor",
    "ProviderKind",
    "ProviderManager",
    "QuestionIntent",
    "SdkProviderCaller",
    "classify_provider_error",
]
