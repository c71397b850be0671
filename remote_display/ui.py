"""
Live view page served by the viewer server.
Fullscreen and idle-hiding of controls live entirely in the page.
"""

import html


def render_index(title: str, ws_port: int, idle_hide_ms: int = 2000) -> str:
    """Return the viewer HTML page."""
    title = html.escape(title)
    return f'''<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <title>{title}</title>
    <style>
        * {{ box-sizing: border-box; margin: 0; padding: 0; }}
        html, body {{ width: 100%; height: 100%; overflow: hidden; background: #000;
                     font-family: system-ui; color: white; }}
        #input-view {{ width: 100vw; height: 100vh; display: flex; flex-direction: column;
                      justify-content: center; align-items: center; gap: 15px; background: #0a0a0f; }}
        #input-view form {{ display: flex; gap: 10px; }}
        #address-input {{ padding: 12px; font-size: 16px; border-radius: 8px; width: 240px;
                         background: rgba(255,255,255,0.1); border: 1px solid rgba(255,255,255,0.2); color: white; }}
        .btn {{ background: rgba(255,255,255,0.15); border: none; color: white; font-size: 16px;
               padding: 10px 16px; border-radius: 10px; cursor: pointer; }}
        .btn.primary {{ background: #e94560; }}
        .error-message {{ color: #f66; max-width: 480px; text-align: center; }}
        #display-view {{ width: 100vw; height: 100vh; display: none; justify-content: center;
                        align-items: center; position: relative; }}
        #display-view.cursor-hidden {{ cursor: none; }}
        #screen {{ max-width: 100%; max-height: 100%; display: none; }}
        #loading {{ position: absolute; top: 50%; left: 50%; transform: translate(-50%, -50%); }}
        #error-overlay {{ position: absolute; inset: 0; display: none; flex-direction: column; gap: 15px;
                         justify-content: center; align-items: center; background: rgba(0,0,0,0.7); }}
        #controls {{ position: fixed; top: 15px; right: 15px; display: flex; gap: 10px;
                    transition: opacity 0.3s; }}
        #fps {{ position: fixed; bottom: 15px; right: 15px; font-size: 12px; color: #aaa;
               transition: opacity 0.3s; }}
        .hidden {{ opacity: 0; pointer-events: none; }}
    </style>
</head>
<body>
    <div id="input-view">
        <h1>{title}</h1>
        <p>Enter the IP address of the display host</p>
        <form id="connect-form">
            <input type="text" id="address-input" placeholder="192.168.1.100" autocomplete="off" autofocus>
            <button type="submit" class="btn primary">Connect</button>
        </form>
        <div class="error-message" id="form-error"></div>
    </div>

    <div id="display-view">
        <img id="screen" alt="Remote screen">
        <div id="loading">Loading...</div>
        <div id="error-overlay">
            <div class="error-message" id="error-text"></div>
            <button class="btn primary" id="retry-btn">Change IP Address</button>
        </div>
        <div id="controls" class="hidden">
            <button class="btn" id="config-btn" title="Change IP Address">⚙</button>
            <button class="btn" id="fullscreen-btn" title="Enter Fullscreen">⤢</button>
        </div>
        <div id="fps" class="hidden">0.0 FPS</div>
    </div>

    <script>
    (function() {{
        const inputView = document.getElementById('input-view');
        const displayView = document.getElementById('display-view');
        const form = document.getElementById('connect-form');
        const input = document.getElementById('address-input');
        const formError = document.getElementById('form-error');
        const screen = document.getElementById('screen');
        const loading = document.getElementById('loading');
        const errorOverlay = document.getElementById('error-overlay');
        const errorText = document.getElementById('error-text');
        const controls = document.getElementById('controls');
        const fpsLabel = document.getElementById('fps');
        const fullscreenBtn = document.getElementById('fullscreen-btn');

        let ws = null;
        let active = false;
        let lastSequence = -1;
        let lastAddress = '';
        let idleTimer = null;

        function post(path, data) {{
            return fetch(path, {{
                method: 'POST',
                headers: {{ 'Content-Type': 'application/json' }},
                body: JSON.stringify(data || {{}})
            }});
        }}

        function render(state) {{
            active = state.active;
            if (!active) {{
                inputView.style.display = 'flex';
                displayView.style.display = 'none';
                input.value = input.value || lastAddress;
                return;
            }}

            lastAddress = state.address;
            inputView.style.display = 'none';
            displayView.style.display = 'flex';
            formError.textContent = '';

            fpsLabel.textContent = (state.fps || 0).toFixed(1) + ' FPS';
            loading.style.display = (state.loading && !state.frame) ? 'block' : 'none';
            errorOverlay.style.display = state.error ? 'flex' : 'none';
            errorText.textContent = state.error;

            if (!state.frame) {{
                screen.style.display = 'none';
                lastSequence = -1;
            }} else if (state.sequence !== lastSequence) {{
                lastSequence = state.sequence;
                // Swap only once the new frame is fully loaded
                const img = new Image();
                img.onload = () => {{
                    screen.src = img.src;
                    screen.style.display = 'block';
                }};
                img.src = '/frame?seq=' + state.sequence;
            }}
        }}

        function connectFeed() {{
            ws = new WebSocket('ws://' + location.hostname + ':{ws_port}');
            ws.onmessage = (event) => render(JSON.parse(event.data));
            ws.onclose = () => setTimeout(connectFeed, 2000);
            ws.onerror = () => ws.close();
        }}

        function changeAddress() {{
            input.value = lastAddress;
            post('/disconnect');
        }}

        form.addEventListener('submit', (e) => {{
            e.preventDefault();
            const address = input.value.trim();
            if (!address) return;
            const url = new URL(window.location.href);
            url.searchParams.set('ip', address);
            window.history.pushState({{}}, '', url);
            post('/connect', {{ address: address }}).then((resp) => {{
                if (!resp.ok) resp.text().then((text) => {{ formError.textContent = text; }});
            }});
        }});

        document.getElementById('retry-btn').onclick = changeAddress;
        document.getElementById('config-btn').onclick = changeAddress;

        fullscreenBtn.onclick = () => {{
            if (!document.fullscreenElement) {{
                document.documentElement.requestFullscreen().catch((err) => {{
                    console.error('Error attempting to enable fullscreen:', err);
                }});
            }} else {{
                document.exitFullscreen();
            }}
        }};

        document.addEventListener('fullscreenchange', () => {{
            const full = !!document.fullscreenElement;
            fullscreenBtn.textContent = full ? '×' : '⤢';
            fullscreenBtn.title = full ? 'Exit Fullscreen' : 'Enter Fullscreen';
        }});

        window.addEventListener('mousemove', () => {{
            if (!active) return;
            controls.classList.remove('hidden');
            fpsLabel.classList.remove('hidden');
            displayView.classList.remove('cursor-hidden');
            clearTimeout(idleTimer);
            idleTimer = setTimeout(() => {{
                controls.classList.add('hidden');
                fpsLabel.classList.add('hidden');
                displayView.classList.add('cursor-hidden');
            }}, {idle_hide_ms});
        }});

        connectFeed();
    }})();
    </script>
</body>
</html>'''
