# This module wraps the pretrained image classifier that produces the probability vector
# It downloads and loads the model, decodes uploaded images, preprocesses them and runs the inference
# TensorFlow is imported lazily so the rest of the app (and the tests) can run without it

import io
import os
import logging
from contextlib import contextmanager

import numpy as np
import requests
from PIL import Image, UnidentifiedImageError

from errors import InferenceFailure, ModelUnavailable

logger = logging.getLogger(__name__)

# width multiplier of the default MobileNet v1 ImageNet classifier
MOBILENET_ALPHA = 0.25
# anything smaller than this is treated as a failed or truncated download
MIN_MODEL_BYTES = 100_000
# download progress is logged each time this many more bytes have arrived
PROGRESS_LOG_BYTES = 10 * 1024 * 1024
# tolerance for float32 softmax outputs that land slightly outside [0, 1]
PROBABILITY_TOLERANCE = 1e-6


# defines a function to check if Tensorflow is available
def check_tensorflow_available():
    """Check if TensorFlow is available"""
    try:
        import tensorflow  # noqa: F401
        return True
    except ImportError:
        return False


# downloads a model file and removes it again if the download is incomplete
def download_model_from_reliable_source(model_url, model_path):
    """Download the model file at model_url to model_path, return True on success"""
    try:
        if os.path.exists(model_path) and os.path.getsize(model_path) > MIN_MODEL_BYTES:
            logger.info(f"Model file already exists at {model_path}")
            return True

        logger.info(f"Downloading model from {model_url}")
        response = requests.get(model_url, stream=True, timeout=60)
        if response.status_code != 200:
            logger.error(f"Failed to download model: HTTP {response.status_code}")
            return False

        total_size = int(response.headers.get('content-length', 0))
        logger.info(f"Starting download, expected size: {total_size} bytes")

        directory = os.path.dirname(model_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(model_path, 'wb') as f:
            downloaded_size = 0
            next_progress_log = PROGRESS_LOG_BYTES
            for chunk in response.iter_content(chunk_size=8192):
                if chunk:  # filter out keep-alive chunks
                    f.write(chunk)
                    downloaded_size += len(chunk)

                    if downloaded_size >= next_progress_log:
                        next_progress_log += PROGRESS_LOG_BYTES
                        progress = (downloaded_size / total_size) * 100 if total_size > 0 else 0
                        logger.info(f"Downloaded {downloaded_size} bytes ({progress:.1f}%)")

        actual_size = os.path.getsize(model_path)
        if actual_size > MIN_MODEL_BYTES:
            logger.info(f"Model downloaded successfully: {actual_size} bytes")
            return True

        logger.error(f"Download failed or file too small: {actual_size} bytes")
        os.remove(model_path)
        return False

    except (requests.exceptions.RequestException, OSError) as e:
        logger.error(f"Error downloading model: {str(e)}")
        if os.path.exists(model_path):
            os.remove(model_path)
        return False


def _load_downloaded_model(tf, config):
    if not download_model_from_reliable_source(config.model_url, config.model_path):
        raise ModelUnavailable(f"Could not download the model from {config.model_url}")

    try:
        logger.info(f"Loading model from {config.model_path}")
        return tf.keras.models.load_model(config.model_path, compile=False)
    except Exception as e:
        logger.error(f"Error loading model: {str(e)}")

    # a corrupted file is removed and downloaded once more
    logger.info("Removing corrupted model file and attempting re-download...")
    if os.path.exists(config.model_path):
        os.remove(config.model_path)
    if not download_model_from_reliable_source(config.model_url, config.model_path):
        raise ModelUnavailable(f"Could not download the model from {config.model_url}")
    try:
        return tf.keras.models.load_model(config.model_path, compile=False)
    except Exception as e:
        raise ModelUnavailable(f"Error loading model after re-download: {str(e)}") from e


def load_image_model(config):
    """Load the image classifier described by config, raise ModelUnavailable if that is impossible"""
    if not check_tensorflow_available():
        logger.warning("TensorFlow not available")
        raise ModelUnavailable("TensorFlow is not installed").add_suggestion("pip install tensorflow")

    import tensorflow as tf

    if config.model_url:
        model = _load_downloaded_model(tf, config)
    else:
        try:
            logger.info(f"Loading MobileNet (alpha={MOBILENET_ALPHA}, {config.input_size}px) ImageNet weights")
            model = tf.keras.applications.MobileNet(
                input_shape=(config.input_size, config.input_size, 3),
                alpha=MOBILENET_ALPHA,
                weights="imagenet",
            )
        except Exception as e:
            logger.error(f"Error loading MobileNet: {str(e)}")
            raise ModelUnavailable(f"Error loading MobileNet: {str(e)}") from e

    logger.info("Model loaded successfully!")
    logger.info(f"Model input shape: {model.input_shape}")
    logger.info(f"Model output shape: {model.output_shape}")
    return model


def model_output_size(model):
    """Number of classes the model scores, taken from its output shape"""
    return int(model.output_shape[-1])


def decode_image(data, max_bytes):
    """Decode uploaded bytes (or a file-like upload) into an RGB PIL image"""
    if hasattr(data, "getvalue"):
        raw = data.getvalue()
    elif hasattr(data, "read"):
        raw = data.read()
    else:
        raw = bytes(data)

    if len(raw) > max_bytes:
        raise InferenceFailure(
            f"Image is {len(raw)} bytes, the limit is {max_bytes} bytes"
        ).add_context("size", len(raw))

    try:
        image = Image.open(io.BytesIO(raw))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise InferenceFailure(f"Could not decode image: {str(e)}") from e
    return image.convert("RGB")


def preprocess_image(image, input_size):
    """Resize to input_size x input_size, scale pixels to [0, 1] and add the batch dimension"""
    image = image.convert("RGB").resize((input_size, input_size), Image.Resampling.NEAREST)
    img_array = np.asarray(image, dtype=np.float32) / 255.0
    return np.expand_dims(img_array, axis=0)


@contextmanager
def inference_buffers():
    """Collect the arrays of one inference call and release them when the call ends."""
    buffers = []
    try:
        yield buffers
    finally:
        logger.debug(f"Releasing {len(buffers)} inference buffers")
        buffers.clear()


def _as_probability_vector(predictions):
    probabilities = np.asarray(predictions, dtype=np.float64)
    if probabilities.ndim == 2 and probabilities.shape[0] == 1:
        probabilities = probabilities[0]
    if probabilities.ndim != 1 or probabilities.size == 0:
        raise InferenceFailure(f"Expected a single probability vector, got shape {probabilities.shape}")
    if not np.all(np.isfinite(probabilities)):
        raise InferenceFailure("The classifier returned non-finite probabilities")
    if probabilities.min() < -PROBABILITY_TOLERANCE or probabilities.max() > 1 + PROBABILITY_TOLERANCE:
        raise InferenceFailure("The classifier returned values outside [0, 1]")
    # copy so the result outlives the inference buffers
    return np.clip(probabilities, 0.0, 1.0).copy()


def predict_probabilities(image, model, input_size):
    """Run the classifier on one image and return its probability vector"""
    with inference_buffers() as buffers:
        try:
            batch = preprocess_image(image, input_size)
            buffers.append(batch)
            predictions = model.predict(batch, verbose=0)
            buffers.append(predictions)
        except Exception as e:
            logger.error(f"Error in image prediction: {str(e)}")
            raise InferenceFailure(f"Error in image prediction: {str(e)}") from e
        return _as_probability_vector(predictions)
