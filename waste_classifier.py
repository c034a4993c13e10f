# This module ties the image classifier and the verdict engine together for one user session
# It decides which errors end a request ("unable to classify") and which ones end the session

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, Optional

from PIL import Image

from category_map import MaterialType
from config import ClassifierConfig
from errors import InferenceFailure, ModelUnavailable
from image_classifier import decode_image, load_image_model, model_output_size, predict_probabilities
from verdict_engine import Verdict, evaluate, material_scores

logger = logging.getLogger(__name__)

ERROR_LABEL = "Error classifying image"


@dataclass(frozen=True)
class ClassificationOutcome:
    """Result of one classification request: a complete verdict or an explicit failure."""
    request_id: int
    verdict: Optional[Verdict] = None
    scores: Dict[MaterialType, float] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.verdict is None

    @property
    def label(self) -> str:
        return ERROR_LABEL if self.verdict is None else self.verdict.label


class WasteClassifier:
    """
    Classifies uploaded images of waste.

    The model is loaded once; every call to classify gets a new request id so
    a caller can drop a result that was overtaken by a newer upload.
    """

    def __init__(self, config: Optional[ClassifierConfig] = None, model=None, model_loader=load_image_model):
        self.config = (config or ClassifierConfig()).validate()
        self._model_loader = model_loader
        self._model = None
        self._lock = threading.Lock()
        self._latest_request = 0
        if model is not None:
            self._attach(model)

    @property
    def model_ready(self) -> bool:
        return self._model is not None

    def _attach(self, model) -> None:
        # fails fast with IndexOutOfRange when the category map does not fit the classifier
        self.config.category_map.validate_against(model_output_size(model))
        self._model = model

    def load_model(self):
        """Load the model if needed; raises ModelUnavailable or IndexOutOfRange."""
        if self._model is None:
            model = self._model_loader(self.config)
            self._attach(model)
            logger.info(f"Classifier ready with {len(self.config.category_map)} category entries")
        return self._model

    def begin_request(self) -> int:
        with self._lock:
            self._latest_request += 1
            return self._latest_request

    def is_current(self, request_id: int) -> bool:
        with self._lock:
            return request_id == self._latest_request

    def classify(self, image) -> ClassificationOutcome:
        """
        Classify a PIL image, raw bytes or an uploaded file.

        Decode and inference problems give a failed outcome; ModelUnavailable
        and IndexOutOfRange are raised to the caller.
        """
        request_id = self.begin_request()
        if self._model is None:
            raise ModelUnavailable("The image classifier is not loaded").add_context("request_id", request_id)

        try:
            if not isinstance(image, Image.Image):
                image = decode_image(image, self.config.max_upload_bytes)
            probabilities = predict_probabilities(image, self._model, self.config.input_size)
        except InferenceFailure as e:
            logger.error(f"Error classifying image (request {request_id}): {e}")
            return ClassificationOutcome(request_id=request_id, error=str(e))

        verdict = evaluate(
            probabilities,
            self.config.category_map,
            acceptance_threshold=self.config.acceptance_threshold,
            apply_weights=self.config.apply_weights,
        )
        scores = dict(material_scores(probabilities, self.config.category_map, apply_weights=self.config.apply_weights))
        logger.info(
            f"Request {request_id}: {verdict.label}, material={verdict.material_type}, "
            f"confidence={verdict.confidence_percent:.1f}%"
        )
        return ClassificationOutcome(request_id=request_id, verdict=verdict, scores=scores)
