from flask import current_app
from openai import OpenAI, OpenAIError, APIStatusError
from campus_utils.errors import UpstreamFailure


class ChatCompleter:
    """
    Single-shot chat completion against an OpenAI-compatible endpoint.

    The underlying client is built with max_retries=0: one request per call,
    and any failure is reported to the caller as UpstreamFailure.
    """

    def __init__(self, api_key, model, base_url=None, timeout=30.0):
        self.model = model
        self._client = None
        if api_key:
            self._client = OpenAI(
                api_key=api_key,
                base_url=base_url,
                timeout=timeout,
                max_retries=0,
            )

    @property
    def configured(self):
        return self._client is not None

    def complete(self, system_prompt, user_message, temperature=0.7, max_tokens=500):
        if self._client is None:
            raise UpstreamFailure("Completion service API key not configured")

        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_message},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except APIStatusError as e:
            raise UpstreamFailure(f"Completion service returned HTTP {e.status_code}") from e
        except OpenAIError as e:
            raise UpstreamFailure(f"Completion service request failed: {e.__class__.__name__}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise UpstreamFailure("Completion service returned an empty response")
        return content.strip()


class CompletionClient:
    """Flask extension: builds one ChatCompleter per app from its config."""

    def __init__(self, app=None):
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        app.extensions["completion"] = ChatCompleter(
            api_key=app.config.get("OPENAI_API_KEY"),
            model=app.config.get("OPENAI_MODEL", "gpt-4o-mini"),
            base_url=app.config.get("OPENAI_BASE_URL"),
            timeout=app.config.get("COMPLETION_TIMEOUT", 30.0),
        )


def get_completer():
    return current_app.extensions["completion"]
