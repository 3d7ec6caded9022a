import json
import urllib.error
import urllib.request


class LayoutOptimizerError(RuntimeError):
    """Raised for remote optimizer transport or response issues."""


class TextGenerationProvider:
    DEFAULT_URL = "https://api.openai.com/v1/chat/completions"

    def __init__(self, api_key, url=None, model="gpt-4o-mini", timeout_ms=30000, retries=1):
        self.api_key = (api_key or "").strip()
        self.url = (url or self.DEFAULT_URL).strip()
        self.model = (model or "gpt-4o-mini").strip()
        self.timeout_seconds = max(float(timeout_ms or 30000) / 1000.0, 1.0)
        self.retries = max(int(retries or 0), 0)

    def complete_json(self, system_prompt, user_prompt):
        payload = {
            "model": self.model,
            "temperature": 0,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }
        data = self._post_json(payload)
        if not isinstance(data, dict):
            raise LayoutOptimizerError("Text generation API returned a non-object body.")
        choices = data.get("choices") or []
        if not isinstance(choices, list) or not choices:
            raise LayoutOptimizerError("No choices returned from text generation API.")
        if not isinstance(choices[0], dict):
            raise LayoutOptimizerError("Text generation API returned a malformed choice.")
        message = choices[0].get("message")
        content = message.get("content") if isinstance(message, dict) else ""
        return self._parse_content(content)

    def _parse_content(self, content):
        text = str(content or "").strip()
        # Models sometimes wrap JSON in a fenced block.
        if text.startswith("```"):
            text = text.strip("`")
            if text.lower().startswith("json"):
                text = text[4:]
        try:
            parsed = json.loads(text)
        except ValueError as exc:
            raise LayoutOptimizerError(f"Optimizer returned invalid JSON: {exc}") from exc
        if not isinstance(parsed, dict):
            raise LayoutOptimizerError("Optimizer response must be a JSON object.")
        return parsed

    def _parse_body(self, raw):
        if not raw:
            return {}
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise LayoutOptimizerError(f"Optimizer response body is not JSON: {exc}") from exc

    def _post_json(self, payload):
        if not self.api_key:
            raise LayoutOptimizerError("Missing layout optimizer API key.")

        body = json.dumps(payload).encode("utf-8")
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

        last_error = None
        for attempt in range(self.retries + 1):
            request = urllib.request.Request(
                url=self.url,
                data=body,
                headers=headers,
                method="POST",
            )
            try:
                with urllib.request.urlopen(request, timeout=self.timeout_seconds) as response:
                    raw = response.read().decode("utf-8")
            except urllib.error.HTTPError as exc:
                raw = exc.read().decode("utf-8", errors="replace")
                message = raw.strip() or str(exc)
                last_error = LayoutOptimizerError(f"Optimizer HTTP {exc.code}: {message}")
                if exc.code in {429, 500, 502, 503, 504} and attempt < self.retries:
                    continue
                break
            except (urllib.error.URLError, TimeoutError, UnicodeDecodeError) as exc:
                last_error = LayoutOptimizerError(f"Optimizer request failed: {exc}")
                if attempt < self.retries:
                    continue
                break
            return self._parse_body(raw)

        raise last_error or LayoutOptimizerError("Optimizer request failed.")
