import io
import logging
import qrcode
from PIL import Image

logger = logging.getLogger(__name__)


def render_pass_qr(pass_id: str, box_size: int = 10, border: int = 4, max_width: int = 1024) -> bytes:
    """Render the pass id as a PNG QR code; the payload is the bare id"""
    if not pass_id:
        raise ValueError("Pass id is required")

    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(pass_id)
    qr.make(fit=True)
    image = qr.make_image(fill_color="black", back_color="white").get_image().convert("RGB")

    if image.width > max_width:
        image = image.resize((max_width, max_width), Image.NEAREST)

    output = io.BytesIO()
    image.save(output, format="PNG")
    logger.debug(f"Rendered pass QR for {pass_id}: {image.width}x{image.height}")
    return output.getvalue()
