import base64

import requests
from loguru import logger

GRAPH_VERSION = "v22.0"
GRAPH_URL = f"https://graph.facebook.com/{GRAPH_VERSION}"
MAX_TEXT_LENGTH = 3800


class WhatsAppClient:
    """Minimal WhatsApp Cloud API client: send text, fetch inbound media."""

    def __init__(self, access_token: str, phone_number_id: str, timeout: float = 20):
        self.access_token = access_token
        self.phone_number_id = phone_number_id
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers["Authorization"] = f"Bearer {access_token}"

    @property
    def configured(self) -> bool:
        return bool(self.access_token and self.phone_number_id)

    def send_text(self, to: str, body: str) -> dict:
        payload = {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "text",
            "text": {"body": body[:MAX_TEXT_LENGTH]},
        }
        r = self.session.post(
            f"{GRAPH_URL}/{self.phone_number_id}/messages",
            json=payload,
            timeout=self.timeout,
        )
        if r.status_code >= 400:
            logger.error("WhatsApp API error {}: {}", r.status_code, r.text)
        r.raise_for_status()
        return r.json()

    def get_media_url(self, media_id: str) -> str:
        r = self.session.get(f"{GRAPH_URL}/{media_id}", timeout=self.timeout)
        r.raise_for_status()
        return r.json()["url"]

    def download_media_as_data_url(self, media_id: str) -> str:
        """Download inbound media and return it as a ``data:`` URL.

        Media URLs require the bearer token, so they cannot be handed to the
        language model directly.
        """
        r = self.session.get(self.get_media_url(media_id), timeout=self.timeout)
        r.raise_for_status()
        mime = r.headers.get("Content-Type", "image/jpeg").split(";")[0]
        encoded = base64.b64encode(r.content).decode("ascii")
        return f"data:{mime};base64,{encoded}"


def extract_messages(payload: dict) -> list[dict]:
    """Flatten a webhook payload into ``{id, from, type, text, media_id}`` dicts."""
    inbound = []
    for entry in payload.get("entry") or []:
        for change in entry.get("changes") or []:
            value = change.get("value") or {}
            for msg in value.get("messages") or []:
                kind = msg.get("type")
                item = {
                    "id": msg.get("id"),
                    "from": msg.get("from"),
                    "type": kind,
                    "text": None,
                    "media_id": None,
                }
                if kind == "text":
                    item["text"] = (msg.get("text") or {}).get("body", "").strip()
                elif kind == "image":
                    image = msg.get("image") or {}
                    item["media_id"] = image.get("id")
                    item["text"] = (image.get("caption") or "").strip() or None
                elif kind == "interactive":
                    inter = msg.get("interactive") or {}
                    reply = inter.get("button_reply") or inter.get("list_reply") or {}
                    item["text"] = reply.get("title") or reply.get("id")
                else:
                    continue
                inbound.append(item)
    return inbound
