#!/usr/bin/env python3
"""
Script de lancement direct du service de confirmation
"""

if __name__ == "__main__":
    import uvicorn

    from medidash.confirmation.app import create_confirmation_app
    from medidash.shared.config import get_confirmation_config

    print("📧 Démarrage du service de confirmation...")
    config = get_confirmation_config()
    app = create_confirmation_app(config)
    uvicorn.run(app, host="0.0.0.0", port=config.service_port)
