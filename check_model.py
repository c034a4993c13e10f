# This file is a quick health check that the image classification model can be loaded
# and that every class index of the category map exists in the model output.
# Pass image paths as arguments to also classify them: python check_model.py bottle.jpg can.png

import sys
import logging

import pandas as pd

from config import load_config
from errors import ConfigurationError, IndexOutOfRange, ModelUnavailable
from waste_classifier import WasteClassifier

logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')


def category_map_table(category_map):
    """The category map as a DataFrame, one row per classifier index"""
    return pd.DataFrame(
        [(e.class_index, e.material_type.value, e.display_name, e.weight) for e in category_map],
        columns=["index", "material", "name", "weight"],
    )


def main(argv=None):
    image_paths = sys.argv[1:] if argv is None else argv

    try:
        config = load_config()
        classifier = WasteClassifier(config)
        classifier.load_model()
        print("✅ Model loaded successfully")
    except ConfigurationError as e:
        print(f"❌ Invalid configuration: {e}")
        return 2
    except ModelUnavailable as e:
        print(f"❌ Failed to load model: {e}")
        return 1
    except IndexOutOfRange as e:
        print(f"❌ Category map does not fit the model: {e}")
        return 1

    print(category_map_table(config.category_map).to_string(index=False))

    exit_code = 0
    for path in image_paths:
        try:
            with open(path, "rb") as f:
                outcome = classifier.classify(f)
        except OSError as e:
            print(f"❌ {path}: {e}")
            exit_code = 1
            continue
        if outcome.failed:
            print(f"❌ {path}: {outcome.error}")
            exit_code = 1
            continue
        verdict = outcome.verdict
        material = verdict.material_type.value if verdict.material_type else "-"
        print(f"{path}: {verdict.label}, material: {material}, confidence: {verdict.confidence_percent:.1f}%")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
