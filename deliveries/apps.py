from django.apps import AppConfig


class DeliveriesConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'deliveries'

    def ready(self):
        # Push every bus event to the websocket groups
        from deliveries.engine import enable_channels_bridge

        enable_channels_bridge()
