import os

from flask import current_app
from werkzeug.utils import secure_filename


class DocumentStore:
    """Local-disk store for issued transcripts.

    Files live under ``base_dir`` and are served by the transcripts
    blueprint; ``save`` returns the public URL for the stored file.
    """

    def __init__(self, base_dir, base_url):
        self.base_dir = base_dir
        self.base_url = (base_url or "").rstrip("/")

    def path_for(self, name):
        return os.path.join(self.base_dir, secure_filename(name))

    def url_for(self, name):
        return f"{self.base_url}/transcripts/files/{secure_filename(name)}"

    def save(self, name, data: bytes) -> str:
        os.makedirs(self.base_dir, exist_ok=True)
        path = self.path_for(name)
        tmp_path = path + ".part"
        with open(tmp_path, "wb") as fh:
            fh.write(data)
        os.replace(tmp_path, path)
        return self.url_for(name)

    def delete(self, name):
        path = self.path_for(name)
        if os.path.exists(path):
            os.remove(path)


def init_document_store(app):
    app.extensions["transcript_store"] = DocumentStore(
        app.config["TRANSCRIPT_STORAGE_DIR"],
        app.config.get("PUBLIC_BASE_URL", ""),
    )


def get_document_store():
    return current_app.extensions["transcript_store"]
