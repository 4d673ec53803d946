"""Sprig: ordered bootstrapping of a dependency-injection container.

Sprig is a small component container, inspired by Spring's application context,
whose main concern is the order in which container extensions run while it
bootstraps. Extensions are ordinary components that implement one of the
processor contracts; the container finds them by type, creates them before any
other component, and runs them in a strict, deterministic order.

Key Features:
    - Registry post-processors that add descriptors, run to a fixed point
    - Factory post-processors that adjust descriptors before anything is created
    - Component post-processors installed in a deterministic chain
    - ``PriorityOrdered`` / ``Ordered`` tiers with stable tie-breaking
    - Startup steps recorded in memory or as OpenTelemetry spans

Basic Usage:
    >>> from sprig.context import ApplicationContext
    >>>
    >>> context = ApplicationContext()
    >>>
    >>> @context.registry.provides()
    >>> class PlaceholderResolver(FactoryPostProcessor):
    ...     def post_process_factory(self, registry):
    ...         ...
    >>>
    >>> context.refresh()

The framework consists of several core modules:
    - registry: Descriptor registration, type introspection and component creation
    - post_processing: Registry and factory post-processor phases
    - installer: Component post-processor installation
    - context: The application context and its refresh sequence
    - ordering: Ordering markers and the processor comparator
    - startup: Startup step recording
    - errors: Framework-specific exceptions
"""
