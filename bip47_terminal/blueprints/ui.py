"""
UI Blueprint - Frontend Routes (Terminal, Auth, Paynym Explorer, Lab, Guestbook)

Serves the HTML pages.  Each page is a small body and script dropped into the
shared terminal layout; all data comes from the JSON API.
"""

import logging

from flask import Blueprint, current_app, render_template_string

logger = logging.getLogger(__name__)

ui_bp = Blueprint("ui", __name__)

LAYOUT = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{{ title }} | {{ app_name }}</title>
    <style>
        :root { --bg: #0b0f10; --panel: #11171a; --fg: #e6f1ef; --accent: #00ff88; --muted: #86a3a1; --err: #ff5f56; }
        * { box-sizing: border-box; }
        body { margin: 0; background: var(--bg); color: var(--fg);
               font-family: ui-monospace, SFMono-Regular, Menlo, Consolas, monospace; }
        nav { display: flex; gap: 18px; padding: 14px 24px; border-bottom: 1px solid #0f2a24; }
        nav a { color: var(--muted); text-decoration: none; }
        nav a:hover { color: var(--accent); }
        main { max-width: 760px; margin: 32px auto; padding: 0 20px; }
        h1 { color: var(--accent); font-size: 1.4rem; }
        .panel { background: var(--panel); border: 1px solid #0f2a24; border-radius: 8px; padding: 20px; margin: 16px 0; }
        button, input, textarea { font: inherit; }
        input, textarea { width: 100%; padding: 10px; background: #0e1315; color: var(--fg);
                          border: 1px solid #184438; border-radius: 6px; }
        button { margin-top: 10px; padding: 10px 18px; background: var(--accent); color: var(--bg);
                 border: none; border-radius: 6px; cursor: pointer; }
        button:disabled { opacity: .5; cursor: wait; }
        .muted { color: var(--muted); }
        .error { color: var(--err); }
        .ok { color: var(--accent); }
        .mono { word-break: break-all; font-size: .85rem; }
        img.qr { background: #fff; padding: 8px; border-radius: 6px; max-width: 280px; }
        img.avatar { width: 40px; height: 40px; border-radius: 50%; vertical-align: middle; margin-right: 10px; }
        ul.checks { list-style: none; padding: 0; }
    </style>
</head>
<body>
    <nav>
        <a href="/">~/terminal</a>
        <a href="/auth">auth47</a>
        <a href="/paynym">paynym</a>
        <a href="/lab">lab</a>
        <a href="/guestbook">guestbook</a>
    </nav>
    <main>
        <h1>{{ title }}</h1>
        {{ body|safe }}
    </main>
    <script>
    const $ = (id) => document.getElementById(id);
    function esc(s) {
        return String(s == null ? "" : s).replace(/[&<>"']/g, c => ({"&": "&amp;", "<": "&lt;", ">": "&gt;", '"': "&quot;", "'": "&#39;"}[c]));
    }
    async function postJSON(url, body) {
        const r = await fetch(url, {method: "POST", headers: {"Content-Type": "application/json"}, body: JSON.stringify(body)});
        const data = await r.json().catch(() => ({}));
        return {ok: r.ok, status: r.status, data};
    }
    function pollAuth(nonce, onDone) {
        const timer = setInterval(async () => {
            const r = await fetch(`/check-auth/${encodeURIComponent(nonce)}`, {cache: "no-store"});
            const s = await r.json();
            if (s.status !== "pending") { clearInterval(timer); onDone(s); }
        }, 2000);
        return timer;
    }
    async function startAuth(target, onDone) {
        const r = await fetch("/start-auth", {cache: "no-store"});
        const c = await r.json();
        if (!r.ok) { target.innerHTML = `<p class="error">${esc(c.error)}</p>`; return; }
        target.innerHTML = `<img class="qr" src="${c.qr}" alt="Auth47 QR">
            <p class="mono"><a class="ok" href="${esc(c.uri)}">${esc(c.uri)}</a></p>
            <p class="muted">Scan with a BIP47 wallet (Samourai, Sparrow, Stack). Expires in 5 minutes.</p>`;
        pollAuth(c.nonce, (s) => onDone(s, c.nonce));
    }
    </script>
    {{ script|safe }}
</body>
</html>
"""


def render_page(title: str, body: str, script: str = "") -> str:
    cfg = current_app.config.get("APP_CONFIG", {})
    return render_template_string(
        LAYOUT,
        title=title,
        app_name=cfg.get("APP_NAME", "BIP47 Terminal"),
        body=body,
        script=script,
    )


CALLBACK_BODY = """
<div class="panel" id="status"><p class="muted">Waiting for wallet...</p></div>
"""

CALLBACK_SCRIPT = """
<script>
(function () {
    const nonce = new URLSearchParams(window.location.search).get("nonce");
    const box = $("status");
    if (!nonce) {
        box.innerHTML = '<p class="muted">Return to your browser to check the authentication result.</p>';
        return;
    }
    pollAuth(nonce, (s) => {
        box.innerHTML = s.status === "verified"
            ? `<p class="ok">Authenticated</p><p class="mono">${esc(s.nym)}</p>`
            : '<p class="error">Authentication failed or expired. Start again from the auth page.</p>';
    });
})();
</script>
"""


def render_callback_page() -> str:
    """Status page shown to the wallet user after a callback redemption."""
    return render_page("Auth47 Callback", CALLBACK_BODY, CALLBACK_SCRIPT)


@ui_bp.route("/")
def index():
    """Terminal home page."""
    body = """
<div class="panel">
    <p>BIP47 reusable payment codes, in the terminal.</p>
    <ul>
        <li><a class="ok" href="/auth">auth47</a> <span class="muted">sign in with a payment code</span></li>
        <li><a class="ok" href="/paynym">paynym</a> <span class="muted">explore the Paynym social graph</span></li>
        <li><a class="ok" href="/lab">lab</a> <span class="muted">decode and validate payment codes</span></li>
        <li><a class="ok" href="/guestbook">guestbook</a> <span class="muted">leave a signed message</span></li>
    </ul>
</div>
"""
    return render_page("BIP47 Terminal", body)


@ui_bp.route("/auth")
def auth_page():
    """Auth47 demo: issue a challenge and poll until the wallet answers."""
    body = """
<div class="panel">
    <button id="start">Generate Auth47 challenge</button>
    <div id="challenge"></div>
    <div id="result"></div>
</div>
"""
    script = """
<script>
$("start").addEventListener("click", () => {
    $("result").innerHTML = "";
    startAuth($("challenge"), (s) => {
        $("result").innerHTML = s.status === "verified"
            ? `<p class="ok">Authenticated as</p><p class="mono">${esc(s.nym)}</p>`
            : '<p class="error">Challenge expired. Generate a new one.</p>';
    });
});
</script>
"""
    return render_page("Auth47", body, script)


@ui_bp.route("/paynym")
def paynym_page():
    """Paynym explorer."""
    body = """
<div class="panel">
    <input id="nym" placeholder="+nymname, nymID or payment code">
    <button id="lookup">Lookup</button>
    <div id="profile"></div>
    <div id="followers"></div>
</div>
"""
    script = """
<script>
$("lookup").addEventListener("click", async () => {
    $("profile").innerHTML = '<p class="muted">Looking up...</p>';
    $("followers").innerHTML = "";
    const r = await postJSON("/api/paynym/lookup", {nym: $("nym").value.trim()});
    if (!r.ok) { $("profile").innerHTML = `<p class="error">${esc(r.data.error)}</p>`; return; }
    const p = r.data;
    const code = (p.codes && p.codes.length) ? p.codes[0].code : "";
    $("profile").innerHTML = `<p>${code ? `<img class="avatar" src="https://paynym.rs/${esc(code)}/avatar">` : ""}
        <span class="ok">${esc(p.nymName)}</span> <span class="muted">${esc(p.nymID)}</span></p>
        <p class="mono">${esc(code)}</p>`;
    const ids = (p.followers || []).map(f => f.nymId);
    if (!ids.length) return;
    const f = await postJSON("/api/paynym/followers", {nymIds: ids});
    $("followers").innerHTML = `<p class="muted">${f.data.length} followers</p>` + f.data.map(x =>
        `<p>${x.avatarUrl ? `<img class="avatar" src="${esc(x.avatarUrl)}">` : ""}${esc(x.nymName)}</p>`).join("");
});
</script>
"""
    return render_page("Paynym Explorer", body, script)


@ui_bp.route("/lab")
def lab_page():
    """Payment code validator."""
    body = """
<div class="panel">
    <input id="code" placeholder="PM8T...">
    <button id="validate">Analyze payment code</button>
    <div id="out"></div>
</div>
"""
    script = """
<script>
$("validate").addEventListener("click", async () => {
    const r = await postJSON("/api/bip47/validate", {paymentCode: $("code").value.trim()});
    if (!r.ok) { $("out").innerHTML = `<p class="error">${esc(r.data.error)}</p>`; return; }
    const v = r.data;
    let html = v.valid ? '<p class="ok">VALID BIP47 Payment Code Version 1</p>' : '<p class="error">INVALID Payment Code</p>';
    html += '<ul class="checks">' + Object.entries(v.checks).map(([k, ok]) =>
        `<li class="${ok ? "ok" : "error"}">${ok ? "PASS" : "FAIL"} ${esc(k)}</li>`).join("") + "</ul>";
    if (v.details) {
        html += Object.entries(v.details).map(([k, val]) =>
            `<p><span class="muted">${esc(k)}</span><br><span class="mono">${esc(val)}</span></p>`).join("");
    }
    $("out").innerHTML = html;
});
</script>
"""
    return render_page("Payment Code Lab", body, script)


@ui_bp.route("/guestbook")
def guestbook_page():
    """Guestbook: sign in with Auth47, then post."""
    body = """
<div class="panel">
    <textarea id="message" rows="3" maxlength="500" placeholder="Leave a message..."></textarea>
    <button id="sign">Sign in with Auth47 to post</button>
    <div id="challenge"></div>
    <div id="status"></div>
</div>
<div id="messages"></div>
"""
    script = """
<script>
async function loadMessages() {
    const r = await fetch("/api/guestbook/messages", {cache: "no-store"});
    const data = await r.json();
    if (!r.ok) { $("messages").innerHTML = `<p class="error">${esc(data.error)}</p>`; return; }
    $("messages").innerHTML = data.map(m => `<div class="panel">
        <p>${m.nymAvatar ? `<img class="avatar" src="${esc(m.nymAvatar)}">` : ""}<span class="ok">${esc(m.nymName)}</span>
        <span class="muted">${esc(m.createdAt)}</span></p><p>${esc(m.message)}</p></div>`).join("");
}
$("sign").addEventListener("click", () => {
    const message = $("message").value.trim();
    if (!message) { $("status").innerHTML = '<p class="error">Write a message first.</p>'; return; }
    startAuth($("challenge"), async (s, nonce) => {
        $("challenge").innerHTML = "";
        if (s.status !== "verified") { $("status").innerHTML = '<p class="error">Challenge expired.</p>'; return; }
        const r = await postJSON("/api/guestbook/submit", {
            nonce, message, challenge: s.challenge, signature: s.signature, nym: s.nym,
        });
        $("status").innerHTML = r.ok ? '<p class="ok">Message posted.</p>' : `<p class="error">${esc(r.data.error)}</p>`;
        if (r.ok) { $("message").value = ""; loadMessages(); }
    });
});
loadMessages();
</script>
"""
    return render_page("Guestbook", body, script)
