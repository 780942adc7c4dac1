"""In-memory model of the broker's ledgers, subscriptions, nodes and keyed entity collections."""