import logging
import httpx
import backoff
from typing import Optional

from genorisk.core.settings import get_settings

logger = logging.getLogger(__name__)


class OllamaClient:
    """
    Client for a local Ollama instance running Llama3.
    Uses Ollama's JSON output mode for structured explanations.
    """
    def __init__(
        self,
        base_url: str = None,
        model: str = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.base_url = base_url or settings.ollama_base_url
        self.model = model or settings.ollama_model
        self.generate_endpoint = f"{self.base_url}/api/generate"
        self._http_client = http_client

    @backoff.on_exception(
        backoff.expo,
        (httpx.RequestError, httpx.HTTPStatusError),
        max_tries=2,
        giveup=lambda e: isinstance(e, httpx.HTTPStatusError) and e.response.status_code < 500
    )
    async def _post(self, client: httpx.AsyncClient, payload: dict) -> dict:
        response = await client.post(self.generate_endpoint, json=payload)
        response.raise_for_status()
        return response.json()

    async def generate_json(self, prompt: str) -> Optional[str]:
        """
        Generates a deterministic JSON explanation.
        Returns None when Ollama is unreachable.
        """
        logger.info("Sending request to Ollama", extra={"model": self.model})

        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "format": "json",
            "keep_alive": "15m",
            "options": {
                "num_predict": 600,
                "temperature": 0.1,
                "top_p": 0.85,
                "repeat_penalty": 1.1,
                "num_ctx": 2048
            }
        }

        try:
            if self._http_client is not None:
                data = await self._post(self._http_client, payload)
            else:
                async with httpx.AsyncClient(timeout=30.0) as client:
                    data = await self._post(client, payload)

            generated_text = data.get("response", "")
            logger.info("Ollama request successful", extra={"response_length": len(generated_text)})
            return generated_text

        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            logger.error(f"Error communicating with Ollama: {str(e)}")
            return None
        except (AttributeError, ValueError) as e:
            logger.error(f"Unexpected Ollama response: {str(e)}")
            return None
