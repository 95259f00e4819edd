"""Unit tests for prompt construction."""
import sys
sys.path.insert(0, 'backend')

from models.conversation import ConversationTurn
from services.prompt_builder import SYSTEM_PROMPT, construct_prompt


def make_history(count):
    return [ConversationTurn(f"question {i}", f"answer {i}", 1000 + i) for i in range(count)]


class TestConstructPrompt:
    """Test suite for construct_prompt."""

    def test_starts_with_persona(self):
        """Test that the persona instructions come first."""
        prompt = construct_prompt("my loop never terminates", [])

        assert prompt.startswith(SYSTEM_PROMPT)
        assert "rubber duck" in SYSTEM_PROMPT
        assert "contradictions" in SYSTEM_PROMPT
        assert "Do not provide immediate solutions" in SYSTEM_PROMPT

    def test_without_history(self):
        """Test prompt layout for a first utterance."""
        prompt = construct_prompt("my loop never terminates", [])

        assert "Previous conversation:" not in prompt
        assert prompt == SYSTEM_PROMPT + "\n\nUser: my loop never terminates\nAssistant:"

    def test_ends_with_open_assistant_cue(self):
        """Test that the model is left to continue as the assistant."""
        prompt = construct_prompt("hello", make_history(2))

        assert prompt.endswith("User: hello\nAssistant:")

    def test_history_rendered_in_order(self):
        """Test that every turn appears as a user line then an assistant line, oldest first."""
        history = make_history(3)
        prompt = construct_prompt("new input", history)

        positions = []
        for turn in history:
            positions.append(prompt.index(f"User: {turn.input}\n"))
            positions.append(prompt.index(f"Assistant: {turn.output}\n"))
        positions.append(prompt.index("User: new input\n"))

        assert positions == sorted(positions)
        assert prompt.index(SYSTEM_PROMPT) < positions[0]

    def test_renders_all_turns_given(self):
        """Test that the builder does not drop turns, even beyond the store cap."""
        history = make_history(25)
        prompt = construct_prompt("next", history)

        for turn in history:
            assert f"User: {turn.input}\n" in prompt
            assert f"Assistant: {turn.output}\n" in prompt

    def test_deterministic(self):
        """Test that identical inputs produce identical prompts."""
        history = make_history(4)
        assert construct_prompt("x", history) == construct_prompt("x", list(history))

    def test_accepts_tuple_history(self):
        """Test that any sequence of turns is accepted."""
        history = tuple(make_history(1))
        prompt = construct_prompt("x", history)

        assert "User: question 0\nAssistant: answer 0\n" in prompt
