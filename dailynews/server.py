import json
import logging
import mimetypes
from pathlib import Path

from flask import Blueprint, Flask, current_app, jsonify, render_template_string, send_file

from .content import ContentError, ContentResolver, nfc
from .render import render_markdown

logger = logging.getLogger(__name__)

CONFIG_NAME = "dailynews.config.json"
_DEFAULTS = {
    "port": 3000,
    "host": "0.0.0.0",
    "log_level": "INFO",
    "excluded_folders": ["오디오", "node_modules", "public", ".git", ".agent", "web-viewer", "client"],
    # first entry whose "match" occurs in the folder name wins
    "categories": [
        {"match": "논문", "icon": "graduation-cap", "color": "var(--accent)"},
        {"match": "뉴스레터", "icon": "newspaper", "color": "#10b981"},
        {"match": "프로덕트", "icon": "zap", "color": "#f59e0b"},
    ],
    "default_category": {"icon": "folder", "color": "var(--text-muted)"},
}

bp = Blueprint("dailynews", __name__)


def load_config(root: Path, overrides: dict | None = None) -> dict:
    cfg = dict(_DEFAULTS)
    path = Path(root) / CONFIG_NAME
    if path.is_file():
        try:
            with open(path, encoding="utf-8") as f:
                user = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("could not load %s: %s", path.name, e)
        else:
            if isinstance(user, dict):
                cfg.update(user)
            else:
                logger.warning("ignoring %s: expected a JSON object, got %s",
                               path.name, type(user).__name__)
    if overrides:
        cfg.update(overrides)
    return cfg


def category_for(name: str, cfg: dict) -> dict:
    default = cfg["default_category"]
    for entry in cfg["categories"]:
        # entries without a string "match" can never apply
        if not isinstance(entry, dict) or not isinstance(entry.get("match"), str):
            continue
        if nfc(entry["match"]) in nfc(name):
            return {"icon": entry.get("icon", default.get("icon")),
                    "color": entry.get("color", default.get("color"))}
    return dict(default)


def _resolver() -> ContentResolver:
    return current_app.extensions["dailynews.resolver"]


def create_app(root=None, config: dict | None = None) -> Flask:
    root = Path(root) if root is not None else Path.cwd()
    cfg = load_config(root, config)

    app = Flask(__name__)
    app.config["DAILYNEWS"] = cfg
    app.json.ensure_ascii = False
    app.extensions["dailynews.resolver"] = ContentResolver(root, cfg["excluded_folders"])
    app.register_blueprint(bp)
    return app


@bp.app_errorhandler(ContentError)
def handle_content_error(e: ContentError):
    return jsonify({"error": str(e)}), e.status_code


@bp.route("/")
def index():
    return render_template_string(MAIN_TEMPLATE)


@bp.route("/api/config")
def api_config():
    cfg = current_app.config["DAILYNEWS"]
    return jsonify({
        "categories": cfg["categories"],
        "default_category": cfg["default_category"],
    })


@bp.route("/api/folders")
def api_folders():
    cfg = current_app.config["DAILYNEWS"]
    folders = []
    for folder in _resolver().list_folders():
        entry = folder.to_json()
        entry["category"] = category_for(folder.name, cfg)
        folders.append(entry)
    return jsonify(folders)


@bp.route("/api/files/<folder>")
def api_files(folder):
    return jsonify(_resolver().list_files(folder))


@bp.route("/api/content/<folder>/<filename>")
def api_content(folder, filename):
    return jsonify({"content": _resolver().read_content(folder, filename)})


@bp.route("/api/render/<folder>/<filename>")
def api_render(folder, filename):
    resolver = _resolver()
    path = resolver.resolve_file(folder, filename)
    text = resolver.read_file(path)
    return jsonify({
        "html": render_markdown(text, path.parent.name),
        "folder": path.parent.name,
        "file": path.name,
    })


@bp.route("/<folder>/<path:asset>")
def content_asset(folder, asset):
    fpath = _resolver().resolve_asset(folder, asset)
    mime, _ = mimetypes.guess_type(str(fpath))
    return send_file(fpath, mimetype=mime)


MAIN_TEMPLATE = r"""<!DOCTYPE html>
<html lang="ko">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>DailyNews</title>
<style>

*, *::before, *::after { box-sizing: border-box; margin: 0; padding: 0; }

:root {
  --bg-primary: #1a1a2e;
  --bg-secondary: #16162a;
  --bg-tertiary: #1f1f3a;
  --bg-hover: rgba(134,112,255,.08);
  --bg-active: rgba(134,112,255,.15);
  --text: #e0def4;
  --text-muted: #908caa;
  --text-faint: #6e6a86;
  --accent: #8673ff;
  --accent-hover: #a48fff;
  --accent-dim: rgba(134,112,255,.35);
  --border: rgba(255,255,255,.06);
  --sidebar-width: 280px;
  --topbar-height: 38px;
  --font: -apple-system, BlinkMacSystemFont, 'Segoe UI', 'Inter', Roboto, 'Noto Sans KR', sans-serif;
  --font-mono: 'Fira Code', 'JetBrains Mono', 'Consolas', monospace;
  --radius: 4px;
}

html, body { height: 100%; background: var(--bg-primary); color: var(--text); font-family: var(--font); font-size: 16px; line-height: 1.6; }

.app { display: flex; height: 100vh; overflow: hidden; }

.sidebar {
  width: var(--sidebar-width);
  background: var(--bg-secondary);
  display: flex;
  flex-direction: column;
  overflow: hidden;
}
.logo { padding: 14px; font-weight: 700; cursor: pointer; border-bottom: 1px solid var(--border); }
.logo span { color: var(--accent); }
.nav-title { padding: 10px 14px 4px; font-size: 11px; color: var(--text-faint); text-transform: uppercase; letter-spacing: .08em; }

.nav-item, .file-item {
  display: flex;
  align-items: center;
  gap: 8px;
  width: calc(100% - 12px);
  margin: 1px 6px;
  padding: 4px 10px;
  background: none;
  border: none;
  border-radius: var(--radius);
  color: var(--text-muted);
  font-family: var(--font);
  font-size: 13px;
  text-align: left;
  cursor: pointer;
}
.nav-item:hover, .file-item:hover { background: var(--bg-hover); color: var(--text); }
.nav-item.active, .file-item.active { background: var(--bg-active); color: var(--accent-hover); }
.dot { width: 8px; height: 8px; border-radius: 50%; flex-shrink: 0; }

.search-input {
  margin: 6px 12px;
  padding: 5px 8px;
  background: var(--bg-tertiary);
  border: 1px solid var(--border);
  border-radius: var(--radius);
  color: var(--text);
  font-family: var(--font);
}
.file-list { flex: 1; overflow-y: auto; }
.empty-small { padding: 8px 16px; font-size: 12px; color: var(--text-faint); }

.main { flex: 1; display: flex; flex-direction: column; min-width: 0; }
.topbar {
  height: var(--topbar-height);
  background: var(--bg-secondary);
  border-bottom: 1px solid var(--border);
  display: flex;
  align-items: center;
  padding: 0 12px;
  gap: 4px;
  font-size: 12px;
  color: var(--text-faint);
}
.topbar .crumb-active { color: var(--text-muted); font-weight: 500; }
.content-area { flex: 1; overflow-y: auto; padding: 48px 56px; }

.cards { display: grid; grid-template-columns: repeat(auto-fill, minmax(240px, 1fr)); gap: 14px; max-width: 900px; margin: 24px auto 0; }
.card {
  padding: 16px;
  background: var(--bg-tertiary);
  border: 1px solid var(--border);
  border-left: 3px solid var(--card-color, var(--accent));
  border-radius: 6px;
  color: var(--text);
  font-family: var(--font);
  text-align: left;
  cursor: pointer;
}
.card:hover { background: var(--bg-hover); }
.card h3 { font-size: 15px; }
.card p { font-size: 12px; color: var(--text-faint); }

.markdown-body { max-width: 750px; margin: 0 auto; color: var(--text); }
.markdown-body h1 { font-size: 1.9em; margin: 0 0 20px; padding-bottom: 10px; border-bottom: 1px solid var(--border); }
.markdown-body h2 { font-size: 1.45em; margin: 32px 0 12px; }
.markdown-body h3 { font-size: 1.2em; margin: 24px 0 8px; }
.markdown-body p { margin: 0 0 16px; line-height: 1.7; }
.markdown-body a { color: var(--accent); text-decoration: none; }
.markdown-body ul, .markdown-body ol { margin: 0 0 16px; padding-left: 2em; }
.markdown-body blockquote { border-left: 2px solid var(--accent-dim); padding: 4px 16px; margin: 0 0 16px; color: var(--text-muted); }
.markdown-body code { font-family: var(--font-mono); background: var(--bg-tertiary); padding: 2px 6px; border-radius: var(--radius); font-size: .85em; }
.markdown-body pre { background: var(--bg-tertiary); border: 1px solid var(--border); border-radius: 6px; padding: 16px; overflow-x: auto; margin: 0 0 16px; }
.markdown-body pre code { background: none; padding: 0; }
.markdown-body table { border-collapse: collapse; width: 100%; margin: 0 0 16px; }
.markdown-body th, .markdown-body td { border: 1px solid var(--border); padding: 6px 12px; }
.markdown-body img { max-width: 100%; border-radius: 6px; }

.welcome { display: flex; align-items: center; justify-content: center; height: 100%; color: var(--text-faint); }

@media (max-width: 768px) {
  .sidebar { display: none; }
  .content-area { padding: 24px 18px; }
}
</style>
</head>
<body>
<div class="app">
  <nav class="sidebar" id="sidebar">
    <div class="logo" id="logo">Daily<span>News</span></div>
    <div class="nav-title">Collections</div>
    <div id="folderList"></div>
    <div id="fileGroup" style="display:none; flex:1; min-height:0; flex-direction:column">
      <div class="nav-title">Documents</div>
      <input type="text" class="search-input" id="searchInput" placeholder="Search..." autocomplete="off">
      <div class="file-list" id="fileList"></div>
    </div>
  </nav>
  <div class="main">
    <div class="topbar" id="breadcrumb"></div>
    <div class="content-area" id="contentArea"></div>
  </div>
</div>

<script>
const $ = s => document.querySelector(s);
const folderList = $('#folderList');
const fileGroup = $('#fileGroup');
const fileList = $('#fileList');
const searchInput = $('#searchInput');
const breadcrumb = $('#breadcrumb');
const contentArea = $('#contentArea');

// mirrors dailynews.viewstate: responses carrying an old seq are dropped
let state = { folders: [], folder: null, files: [], file: null, html: '', query: '', seq: 0 };

function esc(s) {
  const d = document.createElement('div');
  d.textContent = s;
  return d.innerHTML;
}

function visibleFiles() {
  const q = state.query.toLowerCase();
  return state.files.filter(f => f.toLowerCase().includes(q));
}

function render() {
  folderList.innerHTML = '';
  state.folders.forEach(f => {
    const btn = document.createElement('button');
    btn.className = 'nav-item' + (state.folder === f.name ? ' active' : '');
    btn.innerHTML = '<span class="dot"></span><span>' + esc(f.name) + '</span>';
    btn.querySelector('.dot').style.background = f.category.color;
    btn.addEventListener('click', () => selectFolder(f.name));
    folderList.appendChild(btn);
  });

  if (!state.folder) {
    fileGroup.style.display = 'none';
    breadcrumb.innerHTML = '<span>Collections</span>';
    contentArea.innerHTML = '<div class="cards" id="cards"></div>';
    const cards = $('#cards');
    state.folders.forEach(f => {
      const card = document.createElement('button');
      card.className = 'card';
      card.style.setProperty('--card-color', f.category.color);
      const updated = f.latestDate ? new Date(f.latestDate).toLocaleString() : '';
      card.innerHTML = '<h3>' + esc(f.name) + '</h3><p>' + esc(updated) + '</p>';
      card.addEventListener('click', () => selectFolder(f.name));
      cards.appendChild(card);
    });
    return;
  }

  fileGroup.style.display = 'flex';
  fileList.innerHTML = '';
  const files = visibleFiles();
  files.forEach(name => {
    const btn = document.createElement('button');
    btn.className = 'file-item' + (state.file === name ? ' active' : '');
    btn.textContent = name.replace(/\.md$/, '');
    btn.addEventListener('click', () => loadFile(name));
    fileList.appendChild(btn);
  });
  if (files.length === 0) fileList.innerHTML = '<div class="empty-small">No files match</div>';

  breadcrumb.innerHTML = '<span>' + esc(state.folder) + '</span>' +
    (state.file ? '<span>/</span><span class="crumb-active">' + esc(state.file.replace(/\.md$/, '')) + '</span>' : '');
  contentArea.innerHTML = state.html
    ? '<article class="markdown-body">' + state.html + '</article>'
    : '<div class="welcome"><p>Loading...</p></div>';
}

async function getJson(url) {
  const res = await fetch(url);
  if (!res.ok) throw new Error(res.status + ' ' + url);
  return res.json();
}

async function loadFolders() {
  try {
    state.folders = await getJson('/api/folders');
  } catch (e) {
    console.error('Error loading folders:', e);
  }
  render();
}

async function selectFolder(name) {
  const seq = ++state.seq;
  Object.assign(state, { folder: name, files: [], file: null, html: '', query: '' });
  searchInput.value = '';
  render();
  let files;
  try {
    files = await getJson('/api/files/' + encodeURIComponent(name));
  } catch (e) {
    console.error('Error loading files:', e);
    return;
  }
  if (seq !== state.seq || name !== state.folder) return;
  state.files = files;
  if (files.length > 0) {
    loadFile(files[0]);
  } else {
    render();
  }
}

async function loadFile(name) {
  if (!state.folder) return;
  const seq = ++state.seq;
  const folder = state.folder;
  Object.assign(state, { file: name, html: '' });
  render();
  let data;
  try {
    data = await getJson('/api/render/' + encodeURIComponent(folder) + '/' + encodeURIComponent(name));
  } catch (e) {
    console.error('Error loading content:', e);
    return;
  }
  if (seq !== state.seq) return;
  state.html = data.html;
  render();
  contentArea.scrollTop = 0;
}

searchInput.addEventListener('input', e => {
  state.query = e.target.value;
  render();
});

$('#logo').addEventListener('click', () => {
  state.seq++;
  Object.assign(state, { folder: null, files: [], file: null, html: '', query: '' });
  render();
});

loadFolders();
</script>
</body>
</html>
"""


def main():
    import socket
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    app = create_app()
    cfg = app.config["DAILYNEWS"]
    logging.getLogger().setLevel(cfg["log_level"])
    hostname = socket.gethostname()
    local_ip = socket.gethostbyname(hostname)
    logger.info("Serving content from: %s", app.extensions["dailynews.resolver"].root)
    logger.info("Open http://localhost:%s    (this machine)", cfg["port"])
    logger.info("     http://%s:%s  (other devices on network)", local_ip, cfg["port"])
    app.run(host=cfg["host"], port=cfg["port"])


if __name__ == "__main__":
    main()
