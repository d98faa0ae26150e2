"""Background worker consuming the notification, analytics and file-processing queues."""
