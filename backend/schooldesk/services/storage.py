import os
from flask import current_app, send_from_directory
from werkzeug.utils import secure_filename

from schooldesk.errors import NotFoundError, ValidationError
from schooldesk.models import SiteSetting

PRINT_ASSETS = "print-assets"
LETTERHEAD_KEY = "print_letterhead_url"

ALLOWED_EXTENSIONS = {'png', 'jpg', 'jpeg', 'webp'}
ALLOWED_MIME_TYPES = {
    'image/jpeg', 'image/png', 'image/webp'
}


def sniff_mime(file):
    import magic

    mime = magic.from_buffer(file.read(2048), mime=True)
    file.seek(0)
    return mime


def allowed_file(file):
    filename = secure_filename(file.filename or "")
    filename_ok = '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS
    return filename_ok and sniff_mime(file) in ALLOWED_MIME_TYPES


def _folder(bucket):
    folder = os.path.join(current_app.config.get('UPLOAD_FOLDER', 'static/uploads'), bucket)
    os.makedirs(folder, exist_ok=True)
    return folder


def public_url(bucket, filename):
    base = current_app.config.get("PUBLIC_UPLOAD_URL", "/settings/files").rstrip("/")
    return f"{base}/{bucket}/{filename}"


def save_letterhead(file):
    """
    Store the letterhead as ``letterhead.<ext>``, replacing any previous
    one, and record its public URL in site settings. The caller commits.
    """
    if not file or not file.filename:
        raise ValidationError("No file provided")
    if not allowed_file(file):
        raise ValidationError("Letterhead must be a PNG, JPEG or WEBP image")

    ext = secure_filename(file.filename).rsplit('.', 1)[1].lower()
    folder = _folder(PRINT_ASSETS)
    for existing in os.listdir(folder):
        if existing.startswith("letterhead.") and existing != f"letterhead.{ext}":
            os.remove(os.path.join(folder, existing))

    filename = f"letterhead.{ext}"
    file.save(os.path.join(folder, filename))

    url = public_url(PRINT_ASSETS, filename)
    SiteSetting.set_value(LETTERHEAD_KEY, url)
    return url


def serve_file(bucket, filename):
    folder = os.path.abspath(_folder(secure_filename(bucket)))
    name = secure_filename(filename)
    if not name or not os.path.isfile(os.path.join(folder, name)):
        raise NotFoundError("File not found")
    return send_from_directory(folder, name)
