"""Services for the Rubber Duck voice debugger."""
from .errors import ErrorKind, PipelineError, ValidationError, TranscriptionFailure, TimeoutFailure, PersistenceFailure
from .remote_call import MAX_ATTEMPTS, RetryPolicy, RemoteCallError, call_with_retry
from .session_store import SessionStore, InMemorySessionStore, SessionSweeper, run_store_call
from .prompt_builder import SYSTEM_PROMPT, construct_prompt
from .llm_client import LLMClient, LLMResponse, LLMError, LLMClientError
from .stt_client import SpeechToTextClient, SpeechToTextError, detect_audio_format, decode_audio
from .tts_client import TextToSpeechClient, TextToSpeechError, SynthesisUnavailable
from .orchestrator import VoicePipeline, PipelineStage, PipelineResult, ReasoningResult, FALLBACK_REPLY
from .response_shaper import STATUS_CODES, shape_success, shape_error, shape_http_error

__all__ = [
    'ErrorKind', 'PipelineError', 'ValidationError', 'TranscriptionFailure', 'TimeoutFailure', 'PersistenceFailure',
    'MAX_ATTEMPTS', 'RetryPolicy', 'RemoteCallError', 'call_with_retry',
    'SessionStore', 'InMemorySessionStore', 'SessionSweeper', 'run_store_call',
    'SYSTEM_PROMPT', 'construct_prompt',
    'LLMClient', 'LLMResponse', 'LLMError', 'LLMClientError',
    'SpeechToTextClient', 'SpeechToTextError', 'detect_audio_format', 'decode_audio',
    'TextToSpeechClient', 'TextToSpeechError', 'SynthesisUnavailable',
    'VoicePipeline', 'PipelineStage', 'PipelineResult', 'ReasoningResult', 'FALLBACK_REPLY',
    'STATUS_CODES', 'shape_success', 'shape_error', 'shape_http_error',
]
