"""
Voice debugging pipeline.

Sequences transcription, context retrieval, reasoning, optional synthesis and
history update for one request. Stages run strictly in order:

    VALIDATING -> TRANSCRIBING -> CONTEXTUALIZING -> REASONING
        -> SYNTHESIZING -> PERSISTING -> RESPONDING

Transcription and persistence failures abort the request. A reasoning failure
is replaced by a fixed fallback reply and a synthesis failure by "no audio";
neither reaches the caller. Nothing is written to the session unless the run
reaches PERSISTING.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from services.errors import (
    PipelineError,
    ValidationError,
    TranscriptionFailure,
    TimeoutFailure,
    PersistenceFailure,
    ReasoningFailure,
)
from services.llm_client import LLMClient, LLMResponse
from services.prompt_builder import construct_prompt
from services.remote_call import RetryPolicy, RemoteCallError, call_with_retry
from services.session_store import SessionStore, run_store_call
from services.stt_client import SpeechToTextClient, decode_audio
from services.tts_client import TextToSpeechClient

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "Sorry, I didn't fully understand, could you rephrase?"


class PipelineStage(str, Enum):
    VALIDATING = "validating"
    TRANSCRIBING = "transcribing"
    CONTEXTUALIZING = "contextualizing"
    REASONING = "reasoning"
    SYNTHESIZING = "synthesizing"
    PERSISTING = "persisting"
    RESPONDING = "responding"
    ERRORED = "errored"


@dataclass
class ReasoningResult:
    """Reply text, marked when it is the fallback standing in for a failed call."""
    text: str
    is_fallback: bool = False
    response: Optional[LLMResponse] = None
    failure: Optional[ReasoningFailure] = None


@dataclass
class PipelineResult:
    """Outcome of a successful run."""
    transcript: str
    reasoning: ReasoningResult
    audio: Optional[bytes] = None

    @property
    def text(self) -> str:
        return self.reasoning.text


class VoicePipeline:
    """Orchestrates one voice debugging request across the three providers."""

    def __init__(
        self,
        stt: SpeechToTextClient,
        llm: LLMClient,
        store: SessionStore,
        tts: Optional[TextToSpeechClient] = None,
        policy: Optional[RetryPolicy] = None
    ):
        self.stt = stt
        self.llm = llm
        self.store = store
        self.tts = tts
        self.policy = policy or RetryPolicy()

    async def run(self, audio: Optional[str], user_id: Optional[str]) -> PipelineResult:
        """
        Process one request.

        Args:
            audio: Base64 audio (raw or data: URL)
            user_id: Caller-supplied session key

        Returns:
            PipelineResult with the reply text and optional audio

        Raises:
            ValidationError: Missing or undecodable input
            TranscriptionFailure: Both transcription attempts failed
            PersistenceFailure: The turn could not be stored
        """
        stage = PipelineStage.VALIDATING
        try:
            self._enter(stage, user_id)
            audio_bytes = self._validate(audio, user_id)

            stage = PipelineStage.TRANSCRIBING
            self._enter(stage, user_id)
            transcript = await self._transcribe(audio_bytes, user_id)

            stage = PipelineStage.CONTEXTUALIZING
            self._enter(stage, user_id)
            session = await run_store_call(self.store, self.store.get, user_id)
            history = session.conversation

            stage = PipelineStage.REASONING
            self._enter(stage, user_id)
            reasoning = await self._reason(transcript, history, user_id)

            stage = PipelineStage.SYNTHESIZING
            self._enter(stage, user_id)
            speech = await self._synthesize(reasoning.text, user_id)

            stage = PipelineStage.PERSISTING
            self._enter(stage, user_id)
            await self._persist(user_id, transcript, reasoning.text)

            stage = PipelineStage.RESPONDING
            self._enter(stage, user_id)
            return PipelineResult(transcript=transcript, reasoning=reasoning, audio=speech)

        except PipelineError as e:
            logger.error(
                f"Pipeline failed during {stage.value}: {e.message}",
                extra={"user_id": user_id, "stage": PipelineStage.ERRORED.value, "error_kind": e.kind.value}
            )
            raise

    def _enter(self, stage: PipelineStage, user_id: Optional[str]) -> None:
        logger.debug(f"Entering stage {stage.value}", extra={"user_id": user_id, "stage": stage.value})

    @staticmethod
    def _validate(audio: Optional[str], user_id: Optional[str]) -> bytes:
        if not audio or not user_id:
            raise ValidationError()
        try:
            return decode_audio(audio)
        except ValueError as e:
            raise ValidationError("audio must be base64 encoded") from e

    async def _transcribe(self, audio: bytes, user_id: str) -> str:
        try:
            text = await call_with_retry(
                lambda: self.stt.transcribe_once(audio),
                self.policy,
                label="transcription"
            )
        except RemoteCallError as e:
            if e.timed_out:
                raise TimeoutFailure() from e
            raise TranscriptionFailure() from e

        logger.info(f"STT transcription completed: {text!r}", extra={"user_id": user_id})
        return text

    async def _reason(self, transcript: str, history, user_id: str) -> ReasoningResult:
        prompt = construct_prompt(transcript, history)
        try:
            response = await call_with_retry(
                lambda: self.llm.generate(prompt),
                self.policy,
                label="reasoning"
            )
        except RemoteCallError as e:
            logger.warning(
                f"Reasoning unavailable, using fallback reply: {e}",
                extra={"user_id": user_id}
            )
            return ReasoningResult(
                text=FALLBACK_REPLY,
                is_fallback=True,
                failure=ReasoningFailure(str(e))
            )

        logger.info(
            f"Reasoning response generated ({response.tokens_output} tokens)",
            extra={"user_id": user_id}
        )
        return ReasoningResult(text=response.text, response=response)

    async def _synthesize(self, text: str, user_id: str) -> Optional[bytes]:
        if self.tts is None or not self.tts.is_configured:
            logger.debug("TTS not configured, returning text-only response", extra={"user_id": user_id})
            return None

        try:
            speech = await call_with_retry(
                lambda: self.tts.synthesize_once(text),
                self.policy,
                label="synthesis"
            )
        except Exception as e:
            logger.warning(
                f"TTS unavailable, returning text-only response: {e}",
                extra={"user_id": user_id}
            )
            return None

        logger.info("TTS audio generation success", extra={"user_id": user_id})
        return speech

    async def _persist(self, user_id: str, transcript: str, reply: str) -> None:
        try:
            await run_store_call(self.store, self.store.append, user_id, transcript, reply)
        except PersistenceFailure:
            raise
        except Exception as e:
            raise PersistenceFailure("Failed to save conversation turn") from e
