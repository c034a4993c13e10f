import io

import numpy as np
import pytest
from PIL import Image

IMAGENET_CLASSES = 1000


class FakeModel:
    """Stands in for a Keras model: fixed output, records the batches it was given."""

    def __init__(self, probabilities, output_size=None, error=None):
        self.probabilities = np.asarray(probabilities, dtype=np.float32)
        self.output_shape = (None, output_size or self.probabilities.shape[-1])
        self.input_shape = (None, 224, 224, 3)
        self.error = error
        self.batches = []

    def predict(self, batch, verbose=0):
        self.batches.append(batch.shape)
        if self.error is not None:
            raise self.error
        if self.probabilities.ndim == 1:
            return self.probabilities[np.newaxis, :]
        return self.probabilities


@pytest.fixture
def make_vector():
    """Build a 1000-long probability vector with the given index -> probability values."""
    def _make(values=None, length=IMAGENET_CLASSES):
        vector = [0.0] * length
        for index, probability in (values or {}).items():
            vector[index] = probability
        return vector
    return _make


@pytest.fixture
def fake_model_factory():
    return FakeModel


@pytest.fixture
def png_bytes():
    buffer = io.BytesIO()
    Image.new("RGB", (64, 48), color=(200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()
