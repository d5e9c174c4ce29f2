"""Connect page: where a user pastes their Slack token."""

import json
from html import escape
from string import Template
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from app.dependencies import get_base_url
from services.oauth_service import is_allowed_redirect_uri

router = APIRouter()

PAGE = Template("""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>Connect Slack</title>
<style>
  body { font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif; max-width: 560px; margin: 48px auto; padding: 0 16px; color: #1d1c1d; }
  label { display: block; margin-top: 16px; font-weight: 600; }
  input { width: 100%; padding: 10px; margin-top: 6px; box-sizing: border-box; }
  button { margin-top: 24px; padding: 12px 20px; background: #4a154b; color: #fff; border: 0; border-radius: 6px; cursor: pointer; }
  #status { margin-top: 20px; white-space: pre-wrap; }
  .error { color: #b00020; }
  .success { color: #007a5a; }
</style>
</head>
<body>
<h1>$heading</h1>
<p>Paste a Slack user token (starts with <code>xoxp-</code>). It is checked against Slack and exchanged for an API key.</p>
<form id="connectionForm">
  <label for="slackToken">Slack user token</label>
  <input id="slackToken" type="password" autocomplete="off" required>
  <label for="userName">Name (optional)</label>
  <input id="userName" type="text">
  <label for="userEmail">Email (optional)</label>
  <input id="userEmail" type="email">
  <button id="connectBtn" type="submit">$button</button>
</form>
<div id="status"></div>
<script>
const ctx = $context;

function showStatus(kind, text) {
  const el = document.getElementById('status');
  el.className = kind;
  el.textContent = text;
}

function completeOAuth() {
  const target = new URL(ctx.redirectUri);
  if (target.protocol !== 'https:' && target.protocol !== 'http:') { return; }
  target.searchParams.set('code', ctx.authCode);
  if (ctx.state) { target.searchParams.set('state', ctx.state); }
  window.location.href = target.toString();
}

document.getElementById('connectionForm').addEventListener('submit', async (e) => {
  e.preventDefault();
  const token = document.getElementById('slackToken').value.trim();
  const btn = document.getElementById('connectBtn');
  btn.disabled = true;
  showStatus('', 'Connecting to Slack...');
  try {
    const reg = await fetch(ctx.baseUrl + '/register', {
      method: 'POST',
      headers: {'Content-Type': 'application/json'},
      body: JSON.stringify({
        platformToken: token,
        userInfo: {
          name: document.getElementById('userName').value.trim() || 'Anonymous User',
          email: document.getElementById('userEmail').value.trim(),
          source: ctx.oauth ? 'oauth-web-interface' : 'web-interface'
        }
      })
    });
    const data = await reg.json();
    if (!reg.ok) { showStatus('error', data.message || data.error || 'Connection failed'); return; }

    if (ctx.oauth && ctx.authCode) {
      const stored = await fetch(ctx.baseUrl + '/oauth/store-token', {
        method: 'POST',
        headers: {'Content-Type': 'application/json'},
        body: JSON.stringify({authCode: ctx.authCode, token: data.apiKey})
      });
      if (!stored.ok) { showStatus('error', 'Could not complete authorization. Start again from your assistant.'); return; }
      showStatus('success', 'Connected. Returning to your assistant...');
      completeOAuth();
    } else {
      showStatus('success', 'Connected. Your API key:\\n' + data.apiKey);
    }
  } catch (err) {
    showStatus('error', 'Network error. Check your connection and try again.');
  } finally {
    btn.disabled = false;
  }
});
</script>
</body>
</html>
""")


def _script_json(value: dict) -> str:
    # "</" would close the script element early
    return json.dumps(value).replace("</", "<\\/")


@router.get("/connect", response_class=HTMLResponse, include_in_schema=False)
async def connect_page(
    oauth: Optional[str] = None,
    auth_code: Optional[str] = None,
    redirect_uri: Optional[str] = None,
    state: Optional[str] = None,
    client_id: Optional[str] = None,
    base_url: str = Depends(get_base_url),
) -> HTMLResponse:
    is_oauth = oauth == "true" and bool(auth_code) and is_allowed_redirect_uri(redirect_uri)
    context = {
        "oauth": is_oauth,
        "authCode": auth_code or "",
        "redirectUri": redirect_uri if is_oauth else "",
        "state": state or "",
        "clientId": client_id or "",
        "baseUrl": base_url,
    }
    html = PAGE.substitute(
        heading=escape("Authorize your assistant for Slack" if is_oauth else "Connect Slack"),
        button=escape("Complete connection" if is_oauth else "Connect"),
        context=_script_json(context),
    )
    return HTMLResponse(html)
