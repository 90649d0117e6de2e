"""Small three-file landing page generated for ``web_files_make``."""

from __future__ import annotations

from html import escape

from ..bus.events import Attachment

_HTML = """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width,initial-scale=1" />
  <title>{title}</title>
  <link rel="stylesheet" href="styles.css" />
</head>
<body>
  <header class="nav">
    <div class="brand">{title}</div>
    <a class="nav-cta" href="#pricing">Start Free</a>
  </header>
  <main class="hero reveal">
    <p class="eyebrow">Launch faster with automation</p>
    <h1>{title} that ships outcomes, not busywork.</h1>
    <p class="sub">Automate repetitive work, watch the numbers that matter and keep the team aligned.</p>
    <div class="actions">
      <button id="demoBtn" class="btn btn-primary">Book Demo</button>
      <button id="tourBtn" class="btn btn-ghost">See Product Tour</button>
    </div>
    <p id="out" class="out"></p>
  </main>
  <section class="features">
    <article class="card reveal"><h3>Automations</h3><p>No-code flows for onboarding, support and reporting.</p></article>
    <article class="card reveal"><h3>Live Insights</h3><p>Pipeline health and key metrics in one place.</p></article>
    <article class="card reveal"><h3>Team Velocity</h3><p>Requests become prioritized tasks with clear owners.</p></article>
  </section>
  <section class="pricing reveal" id="pricing">
    <h2>Simple pricing</h2>
    <p>$29/mo starter, $99/mo growth, enterprise on request.</p>
  </section>
  <script src="script.js"></script>
</body>
</html>
"""

_CSS = """:root {
  --bg-1: #081521;
  --bg-2: #10293a;
  --ink: #e9f2ff;
  --muted: #9bb4c9;
  --line: rgba(255,255,255,.14);
  --accent: #44f2b8;
}
* { box-sizing: border-box; }
body {
  margin: 0;
  min-height: 100vh;
  font-family: 'Segoe UI', sans-serif;
  color: var(--ink);
  background: linear-gradient(160deg, var(--bg-1), var(--bg-2));
  padding: 20px clamp(16px, 4vw, 40px) 40px;
}
.nav { display: flex; justify-content: space-between; align-items: center; margin-bottom: 28px; }
.brand { font-weight: 700; letter-spacing: .08em; text-transform: uppercase; }
.nav-cta { color: #032b1f; text-decoration: none; background: var(--accent); padding: 10px 14px; border-radius: 10px; font-weight: 700; }
.hero { max-width: 860px; }
.eyebrow { color: var(--accent); text-transform: uppercase; letter-spacing: .09em; font-size: .78rem; }
h1 { margin: 8px 0 12px; font-size: clamp(1.9rem, 5.5vw, 3.7rem); line-height: 1.05; }
.sub { color: var(--muted); max-width: 56ch; }
.actions { margin-top: 18px; display: flex; gap: 12px; flex-wrap: wrap; }
.btn { border: 0; border-radius: 12px; padding: 11px 16px; font-weight: 700; cursor: pointer; }
.btn-primary { background: var(--accent); color: #023026; }
.btn-ghost { background: rgba(255,255,255,.06); color: var(--ink); border: 1px solid var(--line); }
.out { min-height: 20px; margin-top: 12px; color: #b8fff0; }
.features { margin-top: 34px; display: grid; gap: 14px; grid-template-columns: repeat(auto-fit, minmax(220px, 1fr)); }
.card, .pricing { border: 1px solid var(--line); border-radius: 16px; padding: 16px; background: rgba(255,255,255,.05); }
.card p, .pricing p { margin: 0; color: var(--muted); }
.pricing { margin-top: 26px; }
.reveal { opacity: 0; transform: translateY(12px); }
.reveal.is-on { opacity: 1; transform: none; transition: opacity .55s ease, transform .55s ease; }
"""

_JS = """const out = document.getElementById('out');
document.querySelectorAll('.reveal').forEach((el, i) => {
  setTimeout(() => el.classList.add('is-on'), 120 + i * 120);
});
let demoCount = 0;
document.getElementById('demoBtn').addEventListener('click', () => {
  demoCount += 1;
  out.textContent = 'Demo request queued (' + demoCount + ')';
});
document.getElementById('tourBtn').addEventListener('click', () => {
  out.textContent = 'Product tour sent to your inbox.';
});
"""

WEB_FILE_NAMES = ("index.html", "styles.css", "script.js")


def build_web_files(topic: str) -> list[Attachment]:
    title = escape(topic.strip() or "saas website")
    return [
        Attachment("index.html", _HTML.format(title=title), "text/html", "Generated HTML"),
        Attachment("styles.css", _CSS, "text/css", "Generated CSS"),
        Attachment("script.js", _JS, "application/javascript", "Generated JS"),
    ]
