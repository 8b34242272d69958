"""HTML page rendered inside the main window."""
from __future__ import annotations

import textwrap

HTML_TEMPLATE = textwrap.dedent(
    """
    <!doctype html>
    <html lang="en">
    <head>
        <meta charset="utf-8" />
        <title>File Assistant</title>
        <style>
            :root {
                color-scheme: light dark;
                font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Helvetica, sans-serif;
            }
            body { margin: 0; display: flex; min-height: 100vh; }
            nav { width: 180px; padding: 16px; border-right: 1px solid rgba(128, 128, 128, 0.3); }
            nav button { display: block; width: 100%; margin-bottom: 6px; text-align: left; }
            main { flex: 1; padding: 20px; overflow: auto; }
            section { display: none; }
            section.active { display: block; }
            .badge { padding: 2px 8px; border-radius: 10px; font-size: 12px; }
            .badge.connected { background: #34a853; color: white; }
            .badge.disconnected { background: #ea4335; color: white; }
            .badge.checking { background: #fbbc05; }
            .error { color: #ea4335; margin: 8px 0; }
            .error button { margin-left: 8px; }
            table { border-collapse: collapse; width: 100%; }
            td, th { padding: 4px 8px; border-bottom: 1px solid rgba(128, 128, 128, 0.2); text-align: left; }
            .muted { opacity: 0.7; }
        </style>
    </head>
    <body>
        <nav>
            <div><strong>File Assistant</strong> <span class="muted" id="app-version"></span></div>
            <p><span class="badge checking" id="connection">checking</span></p>
            <button data-page="dashboard">Dashboard</button>
            <button data-page="folders">Folders</button>
            <button data-page="search">Search</button>
            <button data-page="settings">Settings</button>
        </nav>
        <main>
            <section id="page-dashboard" class="active">
                <h2>Monitoring</h2>
                <div class="error" id="monitoring-error"></div>
                <button id="monitoring-refresh">Refresh</button>
                <div id="metrics"></div>
                <h3>Active alerts</h3>
                <table><tbody id="alerts"></tbody></table>
            </section>
            <section id="page-folders">
                <h2>Watched folders</h2>
                <div class="error" id="folders-error"></div>
                <input id="folder-path" placeholder="/path/to/folder" size="40" />
                <label><input type="checkbox" id="folder-recursive" checked /> recursive</label>
                <button id="folder-browse">Browse…</button>
                <button id="folder-add">Add</button>
                <button id="folder-reindex">Re-index all</button>
                <table><tbody id="folders"></tbody></table>
            </section>
            <section id="page-search">
                <h2>Search</h2>
                <input id="query" placeholder="Search files" size="40" />
                <label><input type="checkbox" id="semantic" /> semantic</label>
                <button id="search-go">Search</button>
                <div class="error" id="search-error"></div>
                <table><tbody id="results"></tbody></table>
                <h3>Recent searches</h3>
                <button id="history-clear">Clear history</button>
                <ul id="history"></ul>
            </section>
            <section id="page-settings">
                <h2>Backend</h2>
                <input id="backend-url" size="50" />
                <button id="settings-test">Test connection</button>
                <button id="settings-save">Save</button>
                <div id="settings-result"></div>
            </section>
        </main>
        <script>
            const api = () => window.pywebview.api;
            const el = (id) => document.getElementById(id);
            const esc = (value) => String(value ?? '').replace(/[&<>"]/g, (c) => ({'&': '&amp;', '<': '&lt;', '>': '&gt;', '"': '&quot;'}[c]));

            function showError(id, message, retry) {
                const box = el(id);
                box.innerHTML = message ? `${esc(message)} <button>Retry</button>` : '';
                if (message && retry) box.querySelector('button').onclick = retry;
            }

            function renderSnapshot(snap) {
                el('app-version').innerText = snap.app.app_version;
                const badge = el('connection');
                badge.className = `badge ${snap.app.connection}`;
                badge.innerText = snap.app.connection;
                if (document.activeElement !== el('backend-url')) el('backend-url').value = snap.app.backend_url;

                showError('monitoring-error', snap.monitoring_error, refreshMonitoring);
                const mon = snap.monitoring;
                if (mon) {
                    const metrics = Object.assign({}, mon.systemMetrics, mon.performanceStats);
                    el('metrics').innerHTML = Object.entries(metrics)
                        .map(([k, v]) => `<div><span class="muted">${esc(k)}</span> ${esc(typeof v === 'object' ? JSON.stringify(v) : v)}</div>`)
                        .join('');
                    el('alerts').innerHTML = mon.activeAlerts
                        .map((a) => `<tr><td>${esc(a.level)}</td><td>${esc(a.title)}</td><td>${esc(a.message)}</td></tr>`)
                        .join('') || '<tr><td class="muted">No active alerts</td></tr>';
                }

                showError('folders-error', snap.folders_error, loadFolders);
                el('folders').innerHTML = snap.folders
                    .map((f) => `<tr><td>${esc(f.path)}</td><td>${f.recursive ? 'recursive' : ''}</td><td>${f.enabled ? 'enabled' : 'disabled'}</td>` +
                        `<td><button data-remove="${esc(f.id)}">Remove</button></td></tr>`)
                    .join('') || '<tr><td class="muted">No folders yet</td></tr>';
                el('folders').querySelectorAll('[data-remove]').forEach((btn) => {
                    btn.onclick = async () => { await api().remove_folder(btn.dataset.remove); await refresh(); };
                });

                showError('search-error', snap.search.error, runSearch);
                el('results').innerHTML = snap.search.results
                    .map((r) => `<tr><td>${esc(r.fileName)}</td><td class="muted">${esc(r.filePath)}</td><td>${r.relevanceScore ?? ''}</td></tr>`)
                    .join('');
            }

            async function refresh() { renderSnapshot(await api().snapshot()); }
            async function refreshMonitoring() { await api().refresh_monitoring(); await refresh(); }
            async function loadFolders() { await api().list_folders(); await refresh(); }

            async function runSearch() {
                await api().search({ query: el('query').value, semantic: el('semantic').checked });
                await refresh();
                await loadHistory();
            }

            async function loadHistory() {
                const res = await api().search_history(10);
                const items = res.success && Array.isArray(res.data) ? res.data : [];
                el('history').innerHTML = items.map((h) => `<li>${esc(h.query ?? h)}</li>`).join('');
            }

            document.querySelectorAll('nav [data-page]').forEach((btn) => {
                btn.onclick = () => {
                    document.querySelectorAll('section').forEach((s) => s.classList.remove('active'));
                    el(`page-${btn.dataset.page}`).classList.add('active');
                };
            });
            el('monitoring-refresh').onclick = refreshMonitoring;
            el('folder-browse').onclick = async () => {
                const res = await api().pick_folder();
                if (res.success) el('folder-path').value = res.data.path;
            };
            el('folder-add').onclick = async () => {
                await api().add_folder({ path: el('folder-path').value, recursive: el('folder-recursive').checked });
                await refresh();
            };
            el('folder-reindex').onclick = async () => { await api().reindex(); await refresh(); };
            el('search-go').onclick = runSearch;
            el('query').addEventListener('keydown', (e) => { if (e.key === 'Enter') runSearch(); });
            el('history-clear').onclick = async () => { await api().clear_search_history(); await loadHistory(); };
            el('settings-test').onclick = async () => {
                const res = await api().test_connection(el('backend-url').value);
                el('settings-result').innerText = res.success ? 'Connection OK' : `Failed: ${res.message}`;
            };
            el('settings-save').onclick = async () => {
                const res = await api().save_settings(el('backend-url').value);
                el('settings-result').innerText = res.success ? 'Saved' : `Failed: ${res.message}`;
                await refresh();
            };

            window.addEventListener('pywebviewready', () => {
                refresh();
                loadHistory();
                setInterval(refresh, 2000);
            });
        </script>
    </body>
    </html>
    """
)

__all__ = ["HTML_TEMPLATE"]
