import asyncio
import tempfile
from pathlib import Path

import streamlit as st

from client.api_client import GenerationAPIClient
from client.controller import (
    MAX_DURATION,
    MAX_UI_PROMPT_LENGTH,
    MIN_DURATION,
    GenerationController,
    download_filename,
)
from core.config import settings
from core.logging import configure_logging
from domain.models import GenerationStatus, VideoStyle
from store.key_value import JsonFileKeyValueStorage
from store.library_store import LocalLibraryStore

configure_logging(json_logs=(settings.ENV == "production"), log_level=settings.LOG_LEVEL)

st.set_page_config(page_title="AI Video Generator", page_icon="🎬", layout="wide")

STATUS_BADGES = {
    GenerationStatus.IDLE: "⏸️ Ready",
    GenerationStatus.PROCESSING: "⏳ Generating your video...",
    GenerationStatus.COMPLETED: "✅ Completed",
    GenerationStatus.FAILED: "❌ Failed",
}


def _toast(level: str, message: str) -> None:
    icon = {"success": "✅", "error": "❌"}.get(level, "ℹ️")
    st.toast(message, icon=icon)


def get_controller() -> GenerationController:
    # One controller per browser session, shared across reruns
    if "controller" not in st.session_state:
        store = LocalLibraryStore(JsonFileKeyValueStorage(settings.LIBRARY_PATH), capacity=settings.LIBRARY_CAPACITY)
        api = GenerationAPIClient(settings.API_BASE_URL)
        st.session_state["controller"] = GenerationController(api=api, store=store, notify=_toast)
    controller = st.session_state["controller"]
    controller.notify = _toast
    return controller


controller = get_controller()
state = controller.state

st.title("🎬 AI Video Generator")
st.caption("Transform your ideas into videos with AI")

gen_col, gallery_col = st.columns([1, 2])

# --- GENERATION PANEL ---
with gen_col:
    st.subheader("Generate Video")

    prompt = st.text_area(
        "Video Prompt",
        value=state.prompt,
        max_chars=MAX_UI_PROMPT_LENGTH,
        placeholder="A serene sunset over a calm lake with birds flying in the distance...",
        height=120,
    )
    duration = st.slider("Duration (seconds)", min_value=MIN_DURATION, max_value=MAX_DURATION, value=5, step=1)
    style = st.selectbox("Video Style", [s.value for s in VideoStyle], format_func=str.capitalize)

    st.markdown(f"**Status:** {STATUS_BADGES[state.status]}")
    progress_slot = st.empty()
    progress_slot.progress(state.progress / 100.0, text=f"{state.progress}%")
    # Redraw the bar in place while a submit or retry is awaited
    controller.on_progress = lambda value: progress_slot.progress(value / 100.0, text=f"{value}%")

    if st.button(
        "Generate Video",
        type="primary",
        use_container_width=True,
        disabled=controller.is_busy or not prompt.strip(),
    ):
        with st.spinner("Generating video... this can take up to 15 minutes"):
            asyncio.run(controller.submit(prompt, duration=duration, style=style))
        st.rerun()

    if state.status == GenerationStatus.FAILED and state.error:
        st.error(state.error)
        retry_col, reset_col = st.columns(2)
        if retry_col.button("Try Again", use_container_width=True):
            with st.spinner("Retrying..."):
                asyncio.run(controller.retry())
            st.rerun()
        if reset_col.button("Reset", use_container_width=True):
            controller.reset()
            st.rerun()
    elif state.status == GenerationStatus.COMPLETED:
        st.success(state.message)
        if state.video_url:
            st.video(state.video_url)
        if st.button("Generate Another", use_container_width=True):
            controller.reset()
            st.rerun()
    elif state.error:
        st.warning(state.error)

# --- GALLERY ---
with gallery_col:
    videos = asyncio.run(controller.videos())
    st.subheader(f"Generated Videos ({len(videos)})")

    if not videos:
        st.info("No videos generated yet. Create your first video!")

    for video in videos:
        with st.container(border=True):
            st.markdown(f"**{video.prompt}**")
            st.caption(
                f"{video.status.value} · {video.duration}s · {video.style or video.quality or 'standard'} · "
                f"{video.created_at:%b %d, %H:%M}"
            )

            if video.status == GenerationStatus.COMPLETED and video.video_url:
                with st.expander("Play"):
                    st.video(video.video_url)

            play_col, delete_col = st.columns(2)
            if video.video_url and play_col.button("Download", key=f"dl-{video.id}", use_container_width=True):
                target = asyncio.run(controller.download(video, Path(tempfile.gettempdir())))
                if target:
                    st.download_button(
                        "Save file",
                        data=target.read_bytes(),
                        file_name=download_filename(video.prompt),
                        mime="video/mp4",
                        key=f"save-{video.id}",
                    )
            if delete_col.button("Delete", key=f"del-{video.id}", use_container_width=True):
                asyncio.run(controller.delete(video.id))
                st.rerun()
