from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Any

from .errors import CaptureFailedError, OverallTimeoutError
from .session import SessionDriver


logger = logging.getLogger(__name__)


PDF_MIME_TYPE = "application/pdf"

# Wraps URL.createObjectURL so blobs of the wanted MIME type are copied (as data: URLs) into a
# page-global queue. The page's own behavior is unchanged: the original is always called.
# Re-running it only resets the queue; the wrapper is detected by its marker property so the
# original reference is never lost to double-wrapping. Every install starts a new attempt: a
# FileReader that finishes after the next install belongs to an old attempt and is dropped.
INSTALL_CAPTURE_JS = """
(mimeType) => {
  window.__captureAttempt = (window.__captureAttempt || 0) + 1;
  window.__capturedBlobs = [];
  window.__captureMimeType = mimeType;
  const current = URL.createObjectURL;
  if (current && current.__blobCapture) {
    return false;
  }
  const original = current;
  const wrapped = function (obj) {
    try {
      if (obj instanceof Blob && obj.type === window.__captureMimeType) {
        const attempt = window.__captureAttempt;
        const reader = new FileReader();
        reader.onload = () => {
          if (attempt !== window.__captureAttempt) return;
          if (!Array.isArray(window.__capturedBlobs)) window.__capturedBlobs = [];
          window.__capturedBlobs.push(reader.result);
        };
        reader.readAsDataURL(obj);
      }
    } catch (_) {}
    return original.apply(URL, arguments);
  };
  wrapped.__blobCapture = true;
  wrapped.__original = original;
  URL.createObjectURL = wrapped;
  return true;
}
"""

PENDING_CAPTURES_JS = "() => (Array.isArray(window.__capturedBlobs) ? window.__capturedBlobs.length : 0)"

# Read and clear in one step so a later attempt never sees this attempt's leftovers.
HARVEST_CAPTURES_JS = """
() => {
  const queued = Array.isArray(window.__capturedBlobs) ? window.__capturedBlobs : [];
  window.__capturedBlobs = [];
  return queued;
}
"""


@dataclass(frozen=True)
class Trigger:
    """
    A page-side script that activates the control which makes the portal generate the PDF.
    The script must return true if it found and clicked a control.
    """

    description: str
    script: str
    arg: Any = None


def _page_call(session: SessionDriver, what: str, script: str, arg: Any = None) -> Any:
    # Any page-script failure here (the click may re-render or navigate) is a capture failure.
    try:
        return session.evaluate(script, arg)
    except OverallTimeoutError:
        raise
    except Exception as e:
        raise CaptureFailedError(f"Page script failed during {what}: {e}") from e


def install_capture_hook(session: SessionDriver, *, mime_type: str = PDF_MIME_TYPE) -> bool:
    """
    Install the blob interceptor (idempotent) and reset the queue.

    Returns True if the wrapper was installed now, False if it was already present.
    """
    installed = bool(_page_call(session, "capture hook install", INSTALL_CAPTURE_JS, mime_type))
    logger.debug("Blob capture hook %s.", "installed" if installed else "already present; queue reset")
    return installed


def harvest_captures(session: SessionDriver) -> list[str]:
    queued = _page_call(session, "capture harvest", HARVEST_CAPTURES_JS)
    if not isinstance(queued, list):
        return []
    return [q for q in queued if isinstance(q, str) and q]


def decode_data_url(value: str) -> bytes:
    """
    Decode a `data:<mime>;base64,<payload>` URL produced by FileReader.readAsDataURL.
    """
    header, sep, data = value.partition(",")
    if not sep or not header.startswith("data:") or ";base64" not in header:
        raise CaptureFailedError("Captured blob is not a base64 data URL")
    try:
        payload = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CaptureFailedError(f"Captured blob is not valid base64: {e}") from e
    if not payload:
        raise CaptureFailedError("Captured blob is empty")
    return payload


def capture_binary_artifact(
    session: SessionDriver,
    trigger: Trigger,
    *,
    mime_type: str = PDF_MIME_TYPE,
    wait_seconds: float = 5.0,
    poll_interval_seconds: float = 0.5,
) -> bytes:
    """
    Capture the binary the portal generates in-page (a blob: URL that never hits disk).

    1. install the interceptor (resetting the queue)
    2. run `trigger`, then poll the queue for up to `wait_seconds`
    3. read-and-clear the queue and decode the first entry (later ones are discarded)
    """
    install_capture_hook(session, mime_type=mime_type)

    if not _page_call(session, trigger.description, trigger.script, trigger.arg):
        raise CaptureFailedError(f"No control found for {trigger.description}")

    interval = max(float(poll_interval_seconds), 0.05)
    waited = 0.0
    while True:
        try:
            pending = int(_page_call(session, "capture poll", PENDING_CAPTURES_JS) or 0)
        except (TypeError, ValueError):
            pending = 0
        if pending > 0 or waited >= wait_seconds:
            break
        step = min(interval, wait_seconds - waited)
        session.sleep(step)
        waited += step

    captured = harvest_captures(session)
    if not captured:
        raise CaptureFailedError(f"No PDF captured within {wait_seconds:.1f}s after {trigger.description}")
    if len(captured) > 1:
        logger.debug("Discarding %d extra captured blob(s); using the first.", len(captured) - 1)

    return decode_data_url(captured[0])
