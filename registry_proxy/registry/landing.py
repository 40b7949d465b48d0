"""Landing page served at ``/``."""

from html import escape

from registry_proxy.catalog import RegistryCatalog

_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Container Registry Proxy</title>
  <style>
    body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; padding: 2em; max-width: 800px; margin: auto; background-color: #f5f5f5; }}
    .container {{ background: white; padding: 2em; border-radius: 8px; box-shadow: 0 2px 10px rgba(0,0,0,0.1); }}
    code {{ background-color: #f8f9fa; padding: 0.2em 0.4em; border-radius: 3px; color: #e74c3c; }}
    pre {{ background-color: #2c3e50; color: #ecf0f1; padding: 1em; border-radius: 5px; overflow-x: auto; }}
  </style>
</head>
<body>
  <div class="container">
    <h1>Container Registry Proxy</h1>

    <h2>Supported registries</h2>
    <ul>
      <li>Docker Hub (default)</li>
{registries}
    </ul>

    <h2>Registry mirror (Docker Hub only)</h2>
    <p>Add to <code>/etc/docker/daemon.json</code> and restart Docker:</p>
    <pre><code>{{
  "registry-mirrors": ["https://{host}"]
}}</code></pre>

    <h2>Pull through the proxy</h2>
    <p>Prefix the image name with the proxy host, and with the registry host for anything other than Docker Hub.</p>
    <pre><code>docker pull {host}/ubuntu:latest
{examples}</code></pre>
  </div>
</body>
</html>
"""


def render_landing_page(proxy_host: str, catalog: RegistryCatalog) -> str:
    """Render usage instructions for the configured registries."""
    host = escape(proxy_host)
    prefixes = [escape(prefix) for prefix in sorted(catalog.registries)]

    registries = "\n".join(f"      <li><code>{prefix}</code></li>" for prefix in prefixes)
    examples = "\n".join(f"docker pull {host}/{prefix}/&lt;image&gt;" for prefix in prefixes)

    return _PAGE.format(host=host, registries=registries, examples=examples)
