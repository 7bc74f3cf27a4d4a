"""Generation backend for spec-sync.

Sends a system/user prompt pair to a text-generation provider and returns
the generated text. HTTP providers (gemini, groq) are called with urllib;
the ``cli`` provider runs a local LLM CLI. Calls carry a timeout and are
retried with backoff depending on the failure class.
"""

import json
import shlex
import socket
import subprocess
import time
import urllib.error
import urllib.parse
import urllib.request

from .config import ERROR_PATTERNS, PROVIDERS, SyncConfig
from .errors import ErrorCode, GenerationError
from .logging import get_logger

logger = get_logger("llm")

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
GROQ_URL = "https://api.groq.com/openai/v1/chat/completions"

MOCK_RESPONSE = "Mocked test response from LLM (No API Key provided)"

HTTP_PROVIDERS = ("gemini", "groq")

_FATAL_ERRORS = {ErrorCode.AUTH, ErrorCode.UNSUPPORTED_PROVIDER, ErrorCode.BAD_RESPONSE}
_EXPONENTIAL_ERRORS = {ErrorCode.RATE_LIMIT}


# === Retry strategy ===


def classify_retry_strategy(error_code: ErrorCode | str) -> str:
    """Classify error into retry strategy.

    Returns:
        "fatal" -- no retry, "backoff_exponential" -- long increasing delays,
        "backoff_linear" -- short increasing delays.
    """
    code = ErrorCode(error_code) if isinstance(error_code, str) else error_code
    if code in _FATAL_ERRORS:
        return "fatal"
    if code in _EXPONENTIAL_ERRORS:
        return "backoff_exponential"
    return "backoff_linear"


def compute_retry_delay(error_code: ErrorCode | str, attempt: int, base_delay: int = 5) -> float:
    """Compute delay before next retry based on error type and attempt number.

    Args:
        error_code: The error that caused the failure.
        attempt: Zero-based attempt index.
        base_delay: Base delay in seconds for linear backoff (not used for exponential).
            Exponential backoff uses a fixed 30s base since rate limits need longer waits.
    """
    strategy = classify_retry_strategy(error_code)
    if strategy == "fatal":
        return 0.0
    if strategy == "backoff_exponential":
        return min(30.0 * (2**attempt), 300.0)
    return float(base_delay * (attempt + 1))


# === Helpers ===


def check_error_patterns(output: str) -> str | None:
    """Check CLI output for rate-limit patterns. Returns matched pattern or None."""
    output_lower = output.lower()
    for pattern in ERROR_PATTERNS:
        if pattern.lower() in output_lower:
            return pattern
    return None


def build_cli_command(cmd: str, prompt: str, model: str = "", template: str = "") -> list[str]:
    """Build CLI command from template or auto-detect based on command name.

    Args:
        cmd: CLI command name (e.g., "claude", "codex", "ollama")
        prompt: The prompt text
        model: Model name (optional)
        template: Command template with placeholders (optional)

    Returns:
        List of command arguments ready for subprocess.

    Template placeholders:
        {cmd} - CLI command
        {model} - Model name
        {prompt} - Prompt text (shell-escaped)
    """
    if template:
        formatted = template.format(cmd=cmd, model=model, prompt=shlex.quote(prompt))
        return shlex.split(formatted)

    cmd_lower = cmd.lower()

    if "llama-cli" in cmd_lower or "llama.cpp" in cmd_lower:
        result = [cmd, "-p", prompt, "--no-display-prompt"]
        if model:
            result.extend(["-m", model])
        return result

    elif "ollama" in cmd_lower:
        return [cmd, "run", model or "llama3", prompt]

    else:
        # claude, codex and compatible CLIs
        result = [cmd, "-p", prompt]
        if model:
            result.extend(["--model", model])
        return result


def _classify_http_status(status: int) -> ErrorCode:
    if status == 429:
        return ErrorCode.RATE_LIMIT
    if status in (401, 403):
        return ErrorCode.AUTH
    if status >= 500 or status == 408:
        return ErrorCode.NETWORK
    return ErrorCode.BAD_RESPONSE


def post_json(url: str, payload: dict, headers: dict[str, str], timeout: float) -> dict:
    """POST a JSON payload and decode the JSON response.

    Raises:
        GenerationError: classified by HTTP status or transport failure.
    """
    data = json.dumps(payload).encode("utf-8")
    req = urllib.request.Request(
        url,
        data=data,
        headers={"Content-Type": "application/json", **headers},
        method="POST",
    )
    try:
        with urllib.request.urlopen(req, timeout=timeout) as response:
            body = response.read().decode("utf-8")
    except urllib.error.HTTPError as e:
        detail = e.read().decode("utf-8", errors="replace")[:300]
        raise GenerationError(
            f"HTTP {e.code} from provider: {detail}", _classify_http_status(e.code)
        ) from e
    except (TimeoutError, socket.timeout) as e:
        raise GenerationError(f"Request timed out after {timeout}s", ErrorCode.TIMEOUT) from e
    except urllib.error.URLError as e:
        if isinstance(e.reason, (TimeoutError, socket.timeout)):
            raise GenerationError(
                f"Request timed out after {timeout}s", ErrorCode.TIMEOUT
            ) from e
        raise GenerationError(f"Connection failed: {e.reason}", ErrorCode.NETWORK) from e

    try:
        return json.loads(body)
    except json.JSONDecodeError as e:
        raise GenerationError("Provider returned invalid JSON", ErrorCode.BAD_RESPONSE) from e


# === Client ===


class LLMClient:
    """Text generation client for the configured provider."""

    def __init__(self, config: SyncConfig, sleep=time.sleep):
        self.config = config
        self.provider = config.provider.lower()
        self.model = config.resolved_model
        self._sleep = sleep

    def generate(self, system_prompt: str, user_prompt: str) -> str:
        """Generate text, retrying transient failures with backoff.

        Returns MOCK_RESPONSE when an HTTP provider has no API key.

        Raises:
            GenerationError: when the provider is unsupported, a fatal error
                occurs, or all attempts failed.
        """
        if self.provider not in PROVIDERS:
            raise GenerationError(
                f"Unsupported provider: {self.provider}", ErrorCode.UNSUPPORTED_PROVIDER
            )

        if self.provider in HTTP_PROVIDERS and not self.config.api_key:
            logger.warning("LLM_API_KEY not found, using mock response", provider=self.provider)
            return MOCK_RESPONSE

        attempts = max(1, self.config.max_retries)
        for attempt in range(attempts):
            try:
                started = time.monotonic()
                text = self._dispatch(system_prompt, user_prompt)
                logger.info(
                    "Generation complete",
                    provider=self.provider,
                    model=self.model,
                    attempt=attempt + 1,
                    chars=len(text),
                    duration_seconds=round(time.monotonic() - started, 2),
                )
                return text
            except GenerationError as e:
                strategy = classify_retry_strategy(e.error_code)
                if strategy == "fatal" or attempt + 1 >= attempts:
                    logger.error(
                        "Generation failed",
                        provider=self.provider,
                        error_code=e.error_code.value,
                        attempt=attempt + 1,
                        error=str(e),
                    )
                    raise
                delay = compute_retry_delay(
                    e.error_code, attempt, self.config.retry_delay_seconds
                )
                logger.warning(
                    "Generation failed, retrying",
                    provider=self.provider,
                    error_code=e.error_code.value,
                    attempt=attempt + 1,
                    delay_seconds=delay,
                )
                self._sleep(delay)

        raise GenerationError("No generation attempts were made")  # pragma: no cover

    def _dispatch(self, system_prompt: str, user_prompt: str) -> str:
        if self.provider == "gemini":
            return self._generate_gemini(system_prompt, user_prompt)
        if self.provider == "groq":
            return self._generate_groq(system_prompt, user_prompt)
        return self._generate_cli(system_prompt, user_prompt)

    def _generate_gemini(self, system_prompt: str, user_prompt: str) -> str:
        model = urllib.parse.quote(self.model, safe="")
        key = urllib.parse.quote(self.config.api_key, safe="")
        url = f"{GEMINI_BASE_URL}/models/{model}:generateContent?key={key}"
        payload = {
            "contents": [
                {"parts": [{"text": f"{system_prompt}\n\nUser Request: {user_prompt}"}]}
            ]
        }
        data = post_json(url, payload, {}, self.config.request_timeout_seconds)
        try:
            parts = data["candidates"][0]["content"]["parts"]
            return "".join(part.get("text", "") for part in parts)
        except (KeyError, IndexError, TypeError) as e:
            raise GenerationError(
                "Unexpected Gemini response shape", ErrorCode.BAD_RESPONSE
            ) from e

    def _generate_groq(self, system_prompt: str, user_prompt: str) -> str:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": 0.2,
        }
        headers = {"Authorization": f"Bearer {self.config.api_key}"}
        data = post_json(GROQ_URL, payload, headers, self.config.request_timeout_seconds)
        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise GenerationError("Unexpected Groq response shape", ErrorCode.BAD_RESPONSE) from e

    def _generate_cli(self, system_prompt: str, user_prompt: str) -> str:
        prompt = f"{system_prompt}\n\n{user_prompt}"
        cmd = build_cli_command(
            cmd=self.config.llm_command,
            prompt=prompt,
            model=self.model,
            template=self.config.command_template,
        )
        logger.debug("Running CLI command", command=self.config.llm_command)
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.config.request_timeout_seconds,
                cwd=self.config.project_root,
            )
        except subprocess.TimeoutExpired as e:
            raise GenerationError(
                f"CLI timed out after {self.config.request_timeout_seconds}s", ErrorCode.TIMEOUT
            ) from e
        except FileNotFoundError as e:
            raise GenerationError(
                f"CLI command not found: {self.config.llm_command}",
                ErrorCode.UNSUPPORTED_PROVIDER,
            ) from e

        pattern = check_error_patterns(result.stdout + "\n" + result.stderr)
        if pattern:
            raise GenerationError(f"CLI reported: {pattern}", ErrorCode.RATE_LIMIT)
        if result.returncode != 0:
            raise GenerationError(
                f"CLI exited with code {result.returncode}: {result.stderr.strip()[:300]}",
                ErrorCode.CLI_FAILURE,
            )
        return result.stdout
