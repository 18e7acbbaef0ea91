"""Report generation engine for the back-office

Reports are requested cheaply and computed in the background: creating a
report persists a ``pending`` record and hands the expensive aggregation to a
task dispatcher. The computation walks the report through
``pending -> processing -> completed | error``, memoizes results per
(type, filters) fingerprint in a bounded FIFO cache, and records failures on
the report instead of raising them.

Five aggregators (sales, inventory, customers, orders, financial) read
grouped totals from the orders, users, payments and products stores through
the source contracts in ``sources``."""
