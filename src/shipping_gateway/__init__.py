"""
Shipping Gateway - REST bridge between the shipping-instruction form,
SharePoint lists and email delivery

This package provides a FastAPI-based web service that:

- Resolves SharePoint sites and lists through Microsoft Graph
- Returns list items and the related records they reference
- Renders shipping-instruction submissions to HTML and PDF
- Emails the rendered document as a PDF attachment

The gateway keeps no state of its own: every request acquires its own token,
resolves identifiers live and forgets the submission once the email is sent.

Key Components:
    - main: FastAPI application and HTTP endpoint definitions
    - gateway: Request pipelines composing the collaborators below
    - auth: Client-credentials token acquisition
    - graph_client: Site, list and item resolution
    - renderer: HTML template filling and PDF rasterization
    - mailer: Email composition and relay delivery
    - configuration: YAML defaults, environment and .env loading

Usage:
    Run the API server with:
        uvicorn shipping_gateway.main:app --host 0.0.0.0 --port 3000

    Or use the installed script:
        shipping-gateway
"""
