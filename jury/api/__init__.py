"""
TheJury API Endpoints

This package contains all FastAPI routers for the service:
- polls: Poll CRUD, duplication, password checks (/api/polls)
- votes: Vote submission, has-voted, results and CSV export
- demo: Public demo polls on the landing page (/api/live-polls)
- presenter: Live presentation mode, QR codes and the /ws/polls WebSocket
- embeds: Embed snippets and the public embed payload
- billing: Stripe checkout, billing portal and the Stripe webhook
- api_keys / v1: API key management and the public REST API
- webhooks: Outgoing webhook management
- domains: Custom domains and DNS TXT verification
- teams / experiments / templates / profiles: Workspace features
"""
