import os
import time
import io
from urllib.parse import quote
import requests
import streamlit as st

API_BASE = os.getenv("VIEWER_SERVICE_API_BASE", os.getenv("API_BASE", "http://localhost:8080")).rstrip("/")
POLL_INTERVAL_SEC = float(os.getenv("VIEWER_SERVICE_UI_POLL_INTERVAL", "2.0"))
PENDING_STATUSES = {"pending", "inprogress"}


def _reset_state():
    for key in ["selected_urn", "status", "error"]:
        if key in st.session_state:
            del st.session_state[key]
    # Bump the uploader key to clear any previously uploaded file widget state
    st.session_state["upload_key"] = st.session_state.get("upload_key", 0) + 1


def _list_models() -> list[dict[str, str]]:
    try:
        resp = requests.get(f"{API_BASE}/api/models", timeout=60)
    except Exception as e:
        st.session_state["error"] = f"Failed to connect to API: {e}"
        return []
    if resp.status_code != 200:
        st.session_state["error"] = f"Listing failed: {resp.status_code} {resp.text}"
        return []
    return resp.json()


def _upload_model(uploaded_file: io.BytesIO, zip_entry: str) -> dict[str, str] | None:
    files = {"model-file": (uploaded_file.name, uploaded_file.getvalue(), uploaded_file.type or "application/octet-stream")}
    data = {"model-zip-entry": zip_entry} if zip_entry else {}
    try:
        resp = requests.post(f"{API_BASE}/api/models", files=files, data=data, timeout=600)
    except Exception as e:
        st.session_state["error"] = f"Failed to connect to API: {e}"
        return None
    if resp.status_code != 200:
        st.session_state["error"] = f"Upload failed: {resp.status_code} {resp.text}"
        return None
    return resp.json()


def _get_status(urn: str) -> dict[str, object] | None:
    try:
        resp = requests.get(f"{API_BASE}/api/models/{quote(urn, safe='')}/status", timeout=30)
    except Exception as e:
        st.session_state["error"] = f"Status check failed: {e}"
        return None
    if resp.status_code != 200:
        st.session_state["error"] = f"Status error: {resp.status_code} {resp.text}"
        return None
    return resp.json()


def main() -> None:
    st.set_page_config(page_title="Model Viewer Service", page_icon="🧊", layout="centered")
    st.title("🧊 Model Viewer Service")
    st.caption(f"API base: {API_BASE}")
    st.session_state.pop("error", None)

    if st.button("Restart", type="secondary"):
        _reset_state()
        st.rerun()

    # Upload section
    if "upload_key" not in st.session_state:
        st.session_state["upload_key"] = 0
    uploaded = st.file_uploader(
        "Upload a design file (or a zip archive of one)",
        key=f"uploader-{st.session_state['upload_key']}",
    )
    zip_entry = ""
    if uploaded and uploaded.name.lower().endswith(".zip"):
        zip_entry = st.text_input("Main design file inside the archive")

    if uploaded and st.button("Upload and Translate", type="primary"):
        with st.spinner("Uploading model and starting translation..."):
            model = _upload_model(uploaded, zip_entry)
        if model:
            st.session_state["selected_urn"] = model["urn"]
            st.toast(f"Uploaded {model['name']}", icon="✅")

    # Model list
    models = _list_models()
    if models:
        names = {m["urn"]: m["name"] for m in models}
        urns = list(names)
        selected = st.session_state.get("selected_urn")
        index = urns.index(selected) if selected in names else 0
        st.session_state["selected_urn"] = st.selectbox(
            "Models", urns, index=index, format_func=lambda urn: names[urn]
        )
    else:
        st.info("No models uploaded yet.")

    # Track translation status for the selected model
    if urn := st.session_state.get("selected_urn"):
        with st.status("Checking translation status...", expanded=True) as status_box:
            text_slot = st.empty()
            while True:
                data = _get_status(urn)
                if not data:
                    status_box.update(label="Status unavailable", state="error")
                    break
                status = str(data.get("status", "unknown"))
                progress = str(data.get("progress", ""))
                st.session_state["status"] = status
                text_slot.write(f"Status: {status} {progress}".strip())
                if status == "n/a":
                    status_box.update(label="Model has not been translated yet", state="error")
                    break
                if status == "failed":
                    status_box.update(label="Translation failed", state="error")
                    break
                if status not in PENDING_STATUSES:
                    status_box.update(label="Model ready for viewing", state="complete")
                    break
                time.sleep(POLL_INTERVAL_SEC)

    if err := st.session_state.get("error"):
        st.error(err)


if __name__ == "__main__":
    main()
