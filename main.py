import uvicorn

from form_mail_relay.config_loader import load_settings


if __name__ == "__main__":
    settings = load_settings()
    # The ASGI module configures logging and builds the relay from the same settings.
    uvicorn.run("form_mail_relay.server:app", host=str(settings["http_host"]), port=int(settings["http_port"]))
