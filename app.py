#imports the necessary libraries
import streamlit as st # to build the web app
import pandas as pd # to show the material scores as a table
import logging # to use app wide logging

# sets up the logging configuration
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

from config import load_config
from errors import ConfigurationError, IndexOutOfRange, ModelUnavailable
from image_classifier import load_image_model
from waste_classifier import WasteClassifier

# sets the page configuration, with a title, icon and layout
st.set_page_config(
    page_title="WasteWise - Waste Classification",
    page_icon="♻️",
    layout="centered",
    initial_sidebar_state="expanded"
)

# sorting advice for every material the classifier can detect
SORTING_ADVICE = {
    "Paper": {
        "bin": "Paper recycling (blue)",
        "tips": [
            "Remove any plastic components or covers",
            "Flatten to save space",
            "Keep dry and clean"
        ]
    },
    "Plastic": {
        "bin": "Plastic recycling (check local rules)",
        "tips": [
            "Rinse bottles and containers",
            "Remove caps and labels if required",
            "Check for recyclable plastic symbols"
        ]
    },
    "Glass": {
        "bin": "Glass container (green/clear/brown)",
        "tips": [
            "Separate by color if required",
            "Remove caps and lids",
            "Rinse containers before disposal"
        ]
    },
    "Metal": {
        "bin": "Metal recycling",
        "tips": [
            "Rinse containers before recycling",
            "Crush if possible to save space",
            "Labels can typically stay on"
        ]
    }
}


# reads the configuration once per process and stops the app if it is invalid
@st.cache_resource
def get_config():
    """Load the classifier configuration"""
    return load_config()


# loads the image model once per process, a failure is not cached so it can be retried
@st.cache_resource(show_spinner=False)
def load_cached_model(_config):
    """Load the image classification model"""
    return load_image_model(_config)


# creates the classifier for this session, the model itself is shared
def get_classifier(config):
    if st.session_state.get('classifier') is None:
        model = load_cached_model(config)
        st.session_state.classifier = WasteClassifier(config, model=model)
    return st.session_state.classifier


# clears the uploaded image and the last result
def reset_upload():
    st.session_state.outcome = None
    st.session_state.last_upload = None
    st.session_state.uploader_key += 1


# initializes the session state
if 'outcome' not in st.session_state:
    st.session_state.outcome = None
    st.session_state.last_upload = None
    st.session_state.uploader_key = 0
    st.session_state.classifier = None

st.title("♻️ Waste Classification")
st.markdown("Upload a photo of an item of waste to find out whether it can be recycled.")

try:
    config = get_config()
except ConfigurationError as e:
    logger.error(f"Invalid configuration: {e}")
    st.error(f"Invalid configuration: {e}")
    st.stop()

# loads the model and shows a spinner while loading
try:
    with st.spinner("Loading model, please wait..."):
        classifier = get_classifier(config)
except ModelUnavailable as e:
    logger.error(f"Model unavailable: {e}")
    st.error("The image classification model could not be loaded. No classification is possible right now.")
    st.caption(str(e))
    if st.button("Retry loading the model"):
        load_cached_model.clear()
        st.rerun()
    st.stop()
except IndexOutOfRange as e:
    logger.error(f"Category map does not fit the model: {e}")
    st.error(f"The category map does not fit the loaded model: {e}")
    st.stop()

# sets up the upload box
uploaded_file = st.file_uploader(
    "Click to upload or drag and drop",
    type=["png", "jpg", "jpeg"],
    help=f"PNG, JPG up to {config.max_upload_bytes // (1024 * 1024)}MB",
    key=f"uploader_{st.session_state.uploader_key}"
)

if uploaded_file is not None:
    # classifies each new upload once, streamlit reruns the script on every interaction
    upload_id = (uploaded_file.name, uploaded_file.size)
    if upload_id != st.session_state.last_upload:
        st.session_state.last_upload = upload_id
        with st.spinner("Analyzing your waste image..."):
            try:
                outcome = classifier.classify(uploaded_file)
            except ModelUnavailable as e:
                st.error(f"The model is not available: {e}")
                st.stop()
        # a result that was overtaken by a newer upload is dropped
        if classifier.is_current(outcome.request_id):
            st.session_state.outcome = outcome

    col1, col2 = st.columns([4, 1])
    with col1:
        st.image(uploaded_file.getvalue(), caption="Uploaded waste", width=300)
    with col2:
        st.button("🗑️ Clear", on_click=reset_upload)

# displays the result of the classification
outcome = st.session_state.outcome
if outcome is not None:
    st.markdown("---")
    if outcome.failed:
        st.warning(f"⚠️ {outcome.label}")
        if outcome.error:
            st.caption(outcome.error)
    else:
        verdict = outcome.verdict
        if verdict.recyclable:
            st.success(f"♻️ {verdict.label}")
            st.write(f"**Detected Material:** {verdict.material_type.value}")
        else:
            st.error(f"🚫 {verdict.label}")
        st.write(f"**Confidence:** {verdict.confidence_percent:.1f}%")

        # shows the best probability per material
        with st.expander("Material scores"):
            scores = pd.DataFrame({
                "Material": [material.value for material in outcome.scores],
                "Score (%)": [round(score * 100, 2) for score in outcome.scores.values()],
            })
            st.dataframe(scores, hide_index=True, use_container_width=True)

        # shows the sorting advice for the detected material
        if verdict.recyclable:
            advice = SORTING_ADVICE.get(verdict.material_type.value)
            if advice:
                st.subheader("Waste sorting advice")
                st.write(f"**Disposal bin:** {advice['bin']}")
                st.write("**Tips:**")
                for tip in advice['tips']:
                    st.write(f"- {tip}")

# sets up sidebar
with st.sidebar:
    st.title("WasteWise")
    st.markdown("Your smart recycling assistant")
    st.markdown("## How it works")
    st.markdown(
        f"The photo is scored by a pretrained image classifier. The best match among "
        f"{len(config.category_map)} known objects decides the material, and the item counts as "
        f"recyclable when that match scores above {config.acceptance_threshold:.0%}."
    )

# Footer
st.markdown("---")
st.markdown("© 2025 WasteWise")
