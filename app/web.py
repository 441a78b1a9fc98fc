"""HTML page rendering for the interactive configuration experience."""

from __future__ import annotations

import json
from textwrap import dedent

from .config import Settings
from .models import DEFAULT_CATALOGS, ConfigEnvelope


CONFIG_TEMPLATE = dedent(
    """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>__APP_NAME__ · Configuration</title>
    <style>
        :root {
            color-scheme: dark;
            font-family: 'Inter', 'Segoe UI', system-ui, -apple-system, sans-serif;
            --surface: #141414;
            --surface-muted: #090909;
            --text-primary: #f5f5f5;
            --text-muted: #a6a6a6;
            --outline: #2b2b2b;
            --accent: #d92323;
            background: #000000;
            color: var(--text-primary);
        }
        * {
            box-sizing: border-box;
        }
        body {
            margin: 0;
            min-height: 100vh;
            background: #000000;
        }
        main {
            max-width: 760px;
            margin: 0 auto;
            padding: 3rem 1.5rem 4rem;
        }
        header {
            text-align: center;
            margin-bottom: 2rem;
        }
        header h1 {
            margin-bottom: 0.5rem;
            color: var(--accent);
            font-size: clamp(2rem, 5vw, 3rem);
        }
        .card {
            background: var(--surface);
            border: 1px solid var(--outline);
            border-radius: 20px;
            padding: 1.5rem;
            margin-bottom: 1.5rem;
        }
        .card h2 {
            margin-top: 0;
            font-size: 1.25rem;
        }
        .description {
            color: var(--text-muted);
            font-size: 0.9rem;
        }
        table {
            width: 100%;
            border-collapse: collapse;
        }
        th, td {
            border: 1px solid var(--outline);
            padding: 0.35rem;
            text-align: left;
        }
        input[type="text"], select {
            width: 100%;
            background: var(--surface-muted);
            color: var(--text-primary);
            border: 1px solid var(--outline);
            border-radius: 8px;
            padding: 0.4rem;
        }
        button, .button {
            display: inline-block;
            background: var(--accent);
            color: #ffffff;
            border: none;
            border-radius: 8px;
            padding: 0.55rem 1rem;
            margin: 0.25rem 0.25rem 0.25rem 0;
            cursor: pointer;
            text-decoration: none;
            font-size: 0.95rem;
        }
        button.small {
            padding: 0.25rem 0.55rem;
            background: var(--outline);
        }
        button:disabled {
            opacity: 0.5;
            cursor: not-allowed;
        }
        .toggle {
            display: flex;
            gap: 0.75rem;
            align-items: flex-start;
            margin: 0.75rem 0;
        }
        .error {
            color: var(--accent);
        }
        .hidden {
            display: none;
        }
    </style>
</head>
<body>
<main>
    <header>
        <h1>__APP_NAME__</h1>
        <p class="description">YouTube catalogs for Stremio.</p>
    </header>
    __EMBED__
    <form id="config-form">
        <section class="card">
            <h2>Account</h2>
            <button type="button" id="google-login">Login with Google</button>
            <p id="auth-status" class="description"></p>
        </section>
        <section class="card">
            <h2>Catalogs</h2>
            <p class="description">Use a channel handle, a playlist link, a search link or plain search words.</p>
            <button type="button" id="add-defaults">Add Defaults</button>
            <button type="button" id="remove-defaults">Remove Defaults</button>
            <button type="button" id="add-playlist">Add Playlist</button>
            <table id="playlist-table">
                <thead>
                    <tr><th>Type</th><th>Playlist ID / URL</th><th>Name</th><th>Actions</th></tr>
                </thead>
                <tbody></tbody>
            </table>
        </section>
        <section class="card" id="addon-settings">
            <h2>Settings</h2>
            <label class="toggle">
                <input type="checkbox" id="markWatchedOnLoad" name="markWatchedOnLoad" />
                <span>Mark watched on load<br /><span class="description">Opening a video in Stremio adds it to your YouTube history.</span></span>
            </label>
            <label class="toggle">
                <input type="checkbox" id="search" name="search" />
                <span>Allow searching<br /><span class="description">Stremio searches also return YouTube results.</span></span>
            </label>
        </section>
        <button type="submit" id="submit-btn">Generate Install Link</button>
        <p id="error-message" class="error hidden"></p>
    </form>
    <section class="card hidden" id="results">
        <h2>Install your addon</h2>
        <a href="#" target="_blank" id="install-stremio" class="button">Stremio</a>
        <a href="#" target="_blank" id="install-web" class="button">Stremio Web</a>
        <button type="button" id="copy-btn">Copy URL</button>
        <input type="text" id="install-url" readonly />
    </section>
</main>
<script>
    const state = __STATE_JSON__;
    const defaultPlaylists = state.defaults;
    let playlists = state.catalogs ? state.catalogs : JSON.parse(JSON.stringify(defaultPlaylists));
    const encrypted = state.encrypted || '';
    const tableBody = document.querySelector('#playlist-table tbody');
    const errorBox = document.getElementById('error-message');
    const submitBtn = document.getElementById('submit-btn');
    document.getElementById('markWatchedOnLoad').checked = state.markWatchedOnLoad === true;
    document.getElementById('search').checked = state.search !== false;
    document.getElementById('google-login').textContent = encrypted ? 'Re-login with Google' : 'Login with Google';
    document.getElementById('auth-status').textContent = encrypted ? 'Authenticated' : 'Not authenticated';

    function encodeToken(payload) {
        const json = JSON.stringify(payload);
        const binary = unescape(encodeURIComponent(json));
        return btoa(binary).replace(/\\+/g, '-').replace(/\\//g, '_');
    }

    function currentSettings() {
        return {
            markWatchedOnLoad: document.getElementById('markWatchedOnLoad').checked,
            search: document.getElementById('search').checked,
        };
    }

    function extractPlaylistId(input) {
        const match = input.match(/@[a-zA-Z0-9][a-zA-Z0-9._-]{1,28}[a-zA-Z0-9]/)
            || input.match(/PL(?:[0-9A-F]{16}|[A-Za-z0-9_-]{32})[A-Za-z0-9_-]*/)
            || input.match(/(?<=search_query=)[^&]+/);
        if (match) {
            return decodeURIComponent(match[0].replace(/\\+/g, ' ')).trim();
        }
        return input.trim();
    }

    function button(label, handler) {
        const element = document.createElement('button');
        element.type = 'button';
        element.className = 'small';
        element.textContent = label;
        element.addEventListener('click', handler);
        return element;
    }

    function renderPlaylists() {
        tableBody.innerHTML = '';
        playlists.forEach((playlist, index) => {
            const row = document.createElement('tr');
            const typeCell = document.createElement('td');
            const typeSelect = document.createElement('select');
            ['movie', 'channel'].forEach((value) => {
                const option = document.createElement('option');
                option.value = value;
                option.textContent = value;
                typeSelect.appendChild(option);
            });
            typeSelect.value = playlist.type;
            typeSelect.addEventListener('change', () => playlist.type = typeSelect.value);
            typeCell.appendChild(typeSelect);

            const idCell = document.createElement('td');
            const idInput = document.createElement('input');
            idInput.type = 'text';
            idInput.value = playlist.id;
            idInput.addEventListener('change', () => {
                playlist.id = extractPlaylistId(idInput.value);
                idInput.value = playlist.id;
            });
            idCell.appendChild(idInput);

            const nameCell = document.createElement('td');
            const nameInput = document.createElement('input');
            nameInput.type = 'text';
            nameInput.value = playlist.name;
            nameInput.addEventListener('input', () => playlist.name = nameInput.value.trim());
            nameCell.appendChild(nameInput);

            const actionsCell = document.createElement('td');
            actionsCell.appendChild(button('↑', () => {
                if (index > 0) {
                    [playlists[index - 1], playlists[index]] = [playlists[index], playlists[index - 1]];
                    renderPlaylists();
                }
            }));
            actionsCell.appendChild(button('↓', () => {
                if (index < playlists.length - 1) {
                    [playlists[index + 1], playlists[index]] = [playlists[index], playlists[index + 1]];
                    renderPlaylists();
                }
            }));
            actionsCell.appendChild(button('Remove', () => {
                playlists.splice(index, 1);
                renderPlaylists();
            }));

            row.append(typeCell, idCell, nameCell, actionsCell);
            tableBody.appendChild(row);
        });
    }

    document.getElementById('add-playlist').addEventListener('click', () => {
        playlists.push({ type: 'movie', id: '', name: '' });
        renderPlaylists();
    });
    document.getElementById('add-defaults').addEventListener('click', () => {
        playlists = [...playlists, ...JSON.parse(JSON.stringify(defaultPlaylists))];
        renderPlaylists();
    });
    document.getElementById('remove-defaults').addEventListener('click', () => {
        playlists = playlists.filter((playlist) => !defaultPlaylists.some((entry) => entry.id === playlist.id));
        renderPlaylists();
    });
    document.getElementById('google-login').addEventListener('click', () => {
        const stateToken = encodeToken({ catalogs: playlists, ...currentSettings() });
        window.location.href = state.basePath + '/auth?state=' + encodeURIComponent(stateToken);
    });
    document.getElementById('config-form').addEventListener('submit', (event) => {
        event.preventDefault();
        if (!encrypted) {
            errorBox.textContent = 'You must login with Google to use this addon';
            errorBox.classList.remove('hidden');
            return;
        }
        errorBox.classList.add('hidden');
        submitBtn.disabled = true;
        try {
            const token = encodeToken({ encrypted: encrypted, catalogs: playlists, ...currentSettings() });
            const manifestUrl = state.origin + state.basePath + '/' + token + '/manifest.json';
            const installUrl = document.getElementById('install-url');
            installUrl.value = manifestUrl;
            document.getElementById('install-stremio').href = manifestUrl.replace(/^https?:/, 'stremio:');
            document.getElementById('install-web').href = 'https://web.stremio.com/#/addons?addon=' + encodeURIComponent(manifestUrl);
            document.getElementById('results').classList.remove('hidden');
        } catch (error) {
            errorBox.textContent = error.message;
            errorBox.classList.remove('hidden');
        } finally {
            submitBtn.disabled = false;
        }
    });
    document.getElementById('copy-btn').addEventListener('click', async function () {
        await navigator.clipboard.writeText(document.getElementById('install-url').value);
        this.textContent = 'Copied!';
        setTimeout(() => { this.textContent = 'Copy URL'; }, 2000);
    });
    renderPlaylists();
</script>
</body>
</html>
"""
)


def render_config_page(
    settings: Settings,
    envelope: ConfigEnvelope,
    *,
    origin: str = "",
    base_path: str = "",
) -> str:
    """Return the configuration page pre-filled from ``envelope``."""

    state = {
        "defaults": [spec.model_dump() for spec in DEFAULT_CATALOGS],
        "catalogs": (
            [spec.model_dump() for spec in envelope.catalogs]
            if envelope.catalogs is not None
            else None
        ),
        "encrypted": envelope.encrypted or "",
        "markWatchedOnLoad": envelope.mark_watched_on_load,
        "search": envelope.search,
        "origin": origin.rstrip("/"),
        "basePath": base_path.rstrip("/"),
    }
    state_json = json.dumps(state).replace("</", "<\\/")

    html = CONFIG_TEMPLATE
    replacements = {
        "__APP_NAME__": settings.app_name,
        "__EMBED__": settings.embed_html,
        "__STATE_JSON__": state_json,
    }
    for placeholder, value in replacements.items():
        html = html.replace(placeholder, value)
    return html
