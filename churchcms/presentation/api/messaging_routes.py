from __future__ import annotations

import json
import logging

from fastapi import APIRouter, WebSocket
from fastapi.responses import HTMLResponse

from churchcms.application.notification_coordinator import NotificationCoordinator
from churchcms.application.use_cases.messaging_use_cases import RESOURCES
from churchcms.config import settings
from churchcms.container import session_hub, session_registry


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messaging")


@router.get("/", response_class=HTMLResponse)
async def messaging_index() -> HTMLResponse:
    html = """<!doctype html><html><head><meta charset='utf-8'/><title>Messaging</title>
<meta name='viewport' content='width=device-width,initial-scale=1'/>
<style>
:root{
  --radius:12px; --gap:10px;
  --glass-bg: rgba(20,20,20,.85);
  --glass-border: rgba(255,255,255,.14);
  --shadow: 0 12px 30px rgba(0,0,0,.35);
  --fg: #fff; --fg-dark: #111;
  --info: #2b7de9; --success:#34a853; --warning:#fbbc05; --error:#ea4335;
}
body{margin:0;font:14px/1.4 'Segoe UI',system-ui,-apple-system,Arial}
#toasts{position:fixed;top:16px;right:16px;display:flex;flex-direction:column;gap:var(--gap);z-index:2147483647}
.toast{display:flex;align-items:flex-start;gap:10px;min-width:260px;max-width:460px;border-radius:var(--radius);padding:12px 14px;color:var(--fg);
  box-shadow:var(--shadow);position:relative;background:var(--glass-bg);border:1px solid var(--glass-border)}
.toast::before{content:"";position:absolute;left:0;top:0;bottom:0;width:4px;border-radius:var(--radius) 0 0 var(--radius);background:var(--accent)}
.toast .content{flex:1 1 auto;min-width:0}
.toast .title{font-weight:600}
.toast .msg{white-space:pre-wrap;word-break:break-word;opacity:.9}
.toast .close{appearance:none;border:0;background:transparent;color:inherit;opacity:.8;cursor:pointer;font-size:16px}
.toast.info{--accent:var(--info)} .toast.success{--accent:var(--success)}
.toast.warning{--accent:var(--warning)} .toast.error{--accent:var(--error)}
</style></head><body>
<div id='toasts'></div>
<script>
"""
    html += f"const maxToasts = 4; const resources = {json.dumps(sorted(RESOURCES))};\n"
    html += """
function sessionId(){
  let sid = sessionStorage.getItem('messaging_session');
  if(!sid){ sid = 'tab-' + Date.now() + '-' + Math.random().toString(36).slice(2, 11); sessionStorage.setItem('messaging_session', sid); }
  return sid;
}
const endpoint = location.origin.replace(/^http/,'ws') + '/messaging/ws/' + encodeURIComponent(sessionId());
const toasts = document.getElementById('toasts');

function showToast(title, msg, level='info', timeoutMs=5000){
  const L = (level||'info').toLowerCase();
  const d = document.createElement('div'); d.className = 'toast '+L;
  const content = document.createElement('div'); content.className='content';
  const t = document.createElement('div'); t.className='title'; t.textContent = String(title ?? '');
  const m = document.createElement('div'); m.className='msg'; m.textContent = String(msg ?? '');
  content.appendChild(t); if(msg){ content.appendChild(m); }
  const close = document.createElement('button'); close.className='close'; close.textContent='\\u00d7';
  close.addEventListener('click', ()=> d.remove());
  d.appendChild(content); d.appendChild(close);
  toasts.appendChild(d);
  setTimeout(()=> d.remove(), Math.max(600, ~~timeoutMs));
  while(toasts.children.length > maxToasts){ toasts.firstElementChild.remove(); }
}

let sock;
function send(action, body){ try{ sock?.send(JSON.stringify(Object.assign({action}, body||{}))); }catch(e){} }
window.messaging = {
  add: (notification)=> send('add', {notification}),
  dismiss: (id)=> send('dismiss', {id}),
  refresh: (resource)=> send('refresh', {resource}),
  navigate: (tab)=> send('navigate', {tab}),
  resources,
};
function connect(){
  try{ sock = new WebSocket(endpoint); }catch(e){ setTimeout(connect, 1500); return; }
  sock.onclose = ()=>{ setTimeout(connect, 1000); };
  sock.onmessage = (ev)=>{
    try{
      const data = JSON.parse(ev.data);
      if(data?.type==='toast'){ showToast(data.title, data.message, data.level, data.timeout_ms); }
      else if(data?.type==='navigate' && data.url){ window.location.href = data.url; }
    }catch(e){}
  };
}
connect();
</script>
</body></html>"""
    return HTMLResponse(content=html)


def handle_client_frame(coordinator: NotificationCoordinator, raw: str) -> None:
    """Apply one client action; malformed frames are ignored."""
    try:
        data = json.loads(raw)
    except ValueError:
        logger.debug("session %s: ignoring non-JSON frame", coordinator.session_id)
        return
    if not isinstance(data, dict):
        return
    action = str(data.get("action") or "").lower()
    if action == "add":
        payload = data.get("notification")
        if isinstance(payload, dict):
            coordinator.add_notification(payload)
    elif action == "dismiss":
        if data.get("id"):
            coordinator.dismiss_notification(str(data["id"]))
    elif action == "refresh":
        tag = RESOURCES.get(str(data.get("resource") or ""))
        if tag is not None:
            coordinator.refresh(tag)
    elif action == "navigate":
        coordinator.navigate_to_settings(str(data.get("tab") or "messages"))
    else:
        logger.debug("session %s: unknown action %r", coordinator.session_id, action)


@router.websocket("/ws/{session_id}")
async def messaging_ws(ws: WebSocket, session_id: str) -> None:
    await ws.accept()
    hub = session_hub()
    coordinator = session_registry().get_or_create(session_id)
    await hub.register(session_id, ws)
    try:
        while True:
            message = await ws.receive()
            if message["type"] == "websocket.disconnect":
                break
            text = message.get("text")
            if text is None:
                logger.debug("session %s: ignoring binary frame", session_id)
                continue
            handle_client_frame(coordinator, text)
    finally:
        await hub.unregister(session_id, ws)
        # last tab of the session gone: the session ends with it
        if hub.connection_count(session_id) == 0 and settings.close_session_on_disconnect:
            session_registry().close(session_id)
