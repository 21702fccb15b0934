import logging
import httpx
import backoff
from typing import Optional

from genorisk.core.settings import get_settings

logger = logging.getLogger(__name__)


def _is_client_error(e: Exception) -> bool:
    return isinstance(e, httpx.HTTPStatusError) and e.response.status_code < 500


class GroqClient:
    """
    Client for Groq's hosted Llama 3.1 API (OpenAI-compatible).
    Requests JSON-object output for structured explanations.
    """

    def __init__(
        self,
        api_key: str = None,
        model: str = None,
        api_url: str = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.api_key = api_key or settings.groq_api_key
        self.model = model or settings.groq_model
        self.api_url = api_url or settings.groq_api_url
        self._http_client = http_client

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    @backoff.on_exception(
        backoff.expo,
        (httpx.RequestError, httpx.HTTPStatusError),
        max_tries=2,
        giveup=_is_client_error,
    )
    async def _post(self, client: httpx.AsyncClient, payload: dict) -> dict:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        response = await client.post(self.api_url, json=payload, headers=headers)
        response.raise_for_status()
        return response.json()

    async def generate_json(self, prompt: str) -> Optional[str]:
        """
        Generates a JSON explanation via Groq.
        Low temperature for consistent, factual responses.
        Returns None when the API is unreachable or answers with an error.
        """
        if not self.available:
            logger.warning("GROQ_API_KEY not set; skipping Groq request")
            return None

        logger.info("Sending request to Groq", extra={"model": self.model})

        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": 600,
            "temperature": 0.1,
            "top_p": 0.85,
            "response_format": {"type": "json_object"},
        }

        try:
            if self._http_client is not None:
                data = await self._post(self._http_client, payload)
            else:
                async with httpx.AsyncClient(timeout=30.0) as client:
                    data = await self._post(client, payload)

            generated_text = data["choices"][0]["message"]["content"]
            logger.info("Groq request successful", extra={"response_length": len(generated_text)})
            return generated_text

        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            logger.error(f"Error communicating with Groq: {str(e)}")
            return None
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.error(f"Unexpected Groq response shape: {str(e)}")
            return None
