"""Change watching: filters, events, channels and delivery to watchers."""