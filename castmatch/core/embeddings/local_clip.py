"""In-process CLIP backend.

This module wraps a CLIP image encoder from Hugging Face Transformers.
torch and transformers are heavy, so they are imported and the weights
loaded on first use only, and inference runs in a worker thread to keep
the event loop free.
"""

import asyncio
from typing import Optional

import numpy as np

from castmatch.domain.interfaces import EmbeddingBackend
from castmatch.utils.exceptions import BackendRequestError
from castmatch.utils.image_utils import load_image_bytes
from castmatch.utils.logger import get_logger, log_execution_time

logger = get_logger(__name__)

# Mapping from accepted aliases to Hugging Face model IDs
CLIP_MODEL_MAPPING = {
    "ViT-B/32": "openai/clip-vit-base-patch32",
    "ViT-B/16": "openai/clip-vit-base-patch16",
    "ViT-L/14": "openai/clip-vit-large-patch14",
    "Xenova/clip-vit-base-patch32": "openai/clip-vit-base-patch32",
    "Xenova/clip-vit-base-patch16": "openai/clip-vit-base-patch16",
}


def resolve_model_id(model: str) -> str:
    """Map an alias to its Hugging Face model ID; unknown names pass through."""
    return CLIP_MODEL_MAPPING.get(model, model)


class LocalCLIPBackend(EmbeddingBackend):
    """Encoder extracting L2-normalized image embeddings with CLIP."""

    def __init__(self, model: str, device: str = "cpu"):
        """Initialize the backend without loading weights.

        Args:
            model: CLIP model alias or Hugging Face ID
            device: Torch device to run on
        """
        self.model_id = resolve_model_id(model)
        self.device = device
        self._model = None
        self._processor = None
        self._load_error: Optional[Exception] = None
        self._load_lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return "local"

    def is_loaded(self) -> bool:
        return self._model is not None

    def _load(self) -> None:
        from transformers import CLIPModel, CLIPProcessor

        with log_execution_time(logger, f"loading CLIP model {self.model_id}"):
            self._processor = CLIPProcessor.from_pretrained(self.model_id)
            model = CLIPModel.from_pretrained(self.model_id)
            model.to(self.device)
            model.eval()
            self._model = model

        num_params = sum(p.numel() for p in self._model.parameters())
        logger.info(f"Model loaded: {self.model_id} on {self.device} ({num_params:,} parameters)")

    async def _ensure_loaded(self) -> None:
        async with self._load_lock:
            if self._model is not None:
                return
            if self._load_error is not None:
                raise BackendRequestError(
                    f"CLIP model unavailable: {self._load_error}", backend=self.name
                )
            try:
                await asyncio.to_thread(self._load)
            except Exception as e:
                self._load_error = e
                logger.error(f"Failed to load CLIP model {self.model_id}: {e}")
                raise BackendRequestError(
                    f"CLIP model loading failed: {e}", backend=self.name
                ) from e

    def _encode(self, image: bytes) -> np.ndarray:
        import torch

        pil_image = load_image_bytes(image)
        inputs = self._processor(images=pil_image, return_tensors="pt")
        pixel_values = inputs["pixel_values"].to(self.device)

        with torch.no_grad():
            features = self._model.get_image_features(pixel_values=pixel_values)
            features = features / features.norm(dim=-1, keepdim=True)

        return features[0].cpu().numpy().astype(np.float32)

    async def embed(self, image: bytes) -> np.ndarray:
        """Encode one image.

        Raises:
            BackendRequestError: If the model cannot load or the image cannot be encoded
        """
        await self._ensure_loaded()
        try:
            return await asyncio.to_thread(self._encode, image)
        except (OSError, ValueError, RuntimeError) as e:
            raise BackendRequestError(f"CLIP encoding failed: {e}", backend=self.name) from e
